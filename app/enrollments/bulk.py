# app/enrollments/bulk.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional, Sequence

from app.enrollments.model import (
    SYSTEM_ACTOR,
    Actor,
    BulkFailure,
    BulkResult,
    EnrollmentAction,
    EnrollmentStatus,
)
from app.enrollments.service import apply_transition, clean_reason, coerce_action
from app.errors import Result, ValidationError, returns_result
from app.store.base import Store
from settings import settings

logger = logging.getLogger("hyprive.bulk")

EXPIRABLE_STATUSES = (EnrollmentStatus.AWAITING_SUBMISSION, EnrollmentStatus.CHANGES_REQUESTED)


def _unique(ids: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for raw in ids:
        key = str(raw).strip()
        if key and key not in seen:
            seen.add(key)
            out.append(key)
    return out


@returns_result
def bulk_apply(
    store: Store,
    enrollment_ids: Sequence[str],
    action: EnrollmentAction | str,
    actor: Actor,
    reason: Optional[str] = None,
    *,
    organization_id: Optional[str] = None,
    max_workers: Optional[int] = None,
) -> BulkResult:
    """
    Apply one action to many enrollments. Each item commits or fails on its
    own; the batch never aborts part way. For approve, `reason` carries the
    optional remarks.
    """
    act = coerce_action(action)
    ids = _unique(enrollment_ids or [])
    if not ids:
        raise ValidationError("At least one enrollment ID is required")
    if len(ids) > settings.BULK_MAX_ITEMS:
        raise ValidationError(f"At most {settings.BULK_MAX_ITEMS} enrollments can be updated at once")

    # one reason for the whole batch, checked before any item is touched
    reason = clean_reason(act, reason)

    def _one(enrollment_id: str) -> Result:
        return apply_transition(store, enrollment_id, act, actor, reason, organization_id=organization_id)

    workers = max(1, int(max_workers or settings.BULK_MAX_WORKERS))
    if workers == 1 or len(ids) == 1:
        results = [_one(i) for i in ids]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(ids))) as pool:
            results = list(pool.map(_one, ids))

    succeeded = []
    failed = []
    for enrollment_id, res in zip(ids, results):
        if res.ok:
            succeeded.append(res.value)
        else:
            failed.append(BulkFailure(id=enrollment_id, code=res.error.code, error=res.error.message))

    logger.info(
        "bulk transition action=%s requested=%s succeeded=%s failed=%s actor=%s:%s",
        act.value,
        len(ids),
        len(succeeded),
        len(failed),
        actor.type.value,
        actor.id,
    )
    return BulkResult(action=act, succeeded=succeeded, failed=failed)


@returns_result
def expire_overdue(store: Store, *, now: Optional[datetime] = None) -> BulkResult:
    """Expire every enrollment whose submission deadline has passed."""
    now = now or datetime.now(timezone.utc)
    with store.transaction() as tx:
        overdue = tx.list_overdue_enrollments(now=now, statuses=EXPIRABLE_STATUSES)

    if not overdue:
        return BulkResult(action=EnrollmentAction.EXPIRE)

    succeeded = []
    failed = []
    for e in overdue:
        res = apply_transition(store, e.id, EnrollmentAction.EXPIRE, SYSTEM_ACTOR, "Submission deadline passed")
        if res.ok:
            succeeded.append(res.value)
        else:
            failed.append(BulkFailure(id=str(e.id), code=res.error.code, error=res.error.message))

    logger.info("expired overdue enrollments expired=%s failed=%s", len(succeeded), len(failed))
    return BulkResult(action=EnrollmentAction.EXPIRE, succeeded=succeeded, failed=failed)
