# app/enrollments/service.py
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from app.enrollments.model import (
    SYSTEM_ACTOR,
    Actor,
    Enrollment,
    EnrollmentAction,
    EnrollmentStatus,
    TransitionEntry,
    TransitionHistory,
)
from app.enrollments.state_machine import (
    COMMIT_STATUSES,
    TERMINAL_STATUSES,
    VOID_STATUSES,
    allowed_actions,
    requires_reason,
    resolve_transition,
    sorted_actions,
)
from app.errors import ConflictError, IllegalTransitionError, NotFoundError, ValidationError, returns_result
from app.payouts.calculator import build_breakdown, calculate_payout
from app.payouts.model import PayoutBreakdown
from app.store.base import Store, StoreTransaction
from app.wallet import ledger
from settings import settings

logger = logging.getLogger("hyprive.enrollments")

PENDING_STATUSES = frozenset({EnrollmentStatus.ENROLLED, EnrollmentStatus.AWAITING_SUBMISSION})

_REASON_LABELS = {
    EnrollmentAction.REJECT: "reject an enrollment",
    EnrollmentAction.REQUEST_CHANGES: "request changes",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_uuid(value: UUID | str, resource: str = "Enrollment") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise NotFoundError.for_resource(resource)


def coerce_action(action: EnrollmentAction | str) -> EnrollmentAction:
    try:
        return EnrollmentAction(action)
    except ValueError:
        raise ValidationError(f"Unknown action: {action}")


def clean_reason(action: EnrollmentAction, reason: Optional[str]) -> Optional[str]:
    text = (reason or "").strip() or None
    if text is None and requires_reason(action):
        raise ValidationError(f"A reason is required to {_REASON_LABELS.get(action, action.value)}")
    if text is not None and len(text) > settings.REASON_MAX_LENGTH:
        raise ValidationError(f"Reason must be less than {settings.REASON_MAX_LENGTH} characters")
    return text


def load_enrollment(tx: StoreTransaction, enrollment_id: UUID | str, organization_id: Optional[str]) -> Enrollment:
    """Foreign enrollments are reported as missing, never as forbidden."""
    enrollment = tx.get_enrollment(_as_uuid(enrollment_id))
    if enrollment is None or (organization_id is not None and enrollment.organization_id != organization_id):
        raise NotFoundError.for_resource("Enrollment")
    return enrollment


def transition_in(
    tx: StoreTransaction,
    enrollment: Enrollment,
    action: EnrollmentAction,
    actor: Actor,
    reason: Optional[str] = None,
    *,
    expected_status: Optional[EnrollmentStatus] = None,
) -> Enrollment:
    """
    Apply one action inside an open transaction: legality, reason, CAS on
    status, history entry, then the hold commit or void the new status calls for.
    """
    if expected_status is not None and enrollment.status != expected_status:
        raise ConflictError(
            f"Enrollment is {enrollment.status.value}, expected {expected_status.value}"
        )

    target = resolve_transition(enrollment.status, action)
    reason = clean_reason(action, reason)

    # history stays ordered even if the clock steps back
    now = max(_utcnow(), enrollment.updated_at)
    if not tx.update_enrollment_status(
        enrollment.id,
        from_status=enrollment.status,
        to_status=target,
        updated_at=now,
    ):
        raise ConflictError()

    tx.append_transition(
        TransitionEntry(
            id=uuid4(),
            enrollment_id=enrollment.id,
            from_status=enrollment.status,
            to_status=target,
            action=action,
            actor_type=actor.type,
            actor_id=actor.id,
            actor_name=actor.name,
            reason=reason,
            created_at=now,
        )
    )

    if target in COMMIT_STATUSES:
        ledger.commit_hold(tx, enrollment_id=enrollment.id)
    elif target in VOID_STATUSES:
        ledger.void_hold(tx, enrollment_id=enrollment.id)

    return replace(enrollment, status=target, updated_at=now)


# ==========================================================
# Public operations
# ==========================================================

@returns_result
def apply_transition(
    store: Store,
    enrollment_id: UUID | str,
    action: EnrollmentAction | str,
    actor: Actor,
    reason: Optional[str] = None,
    *,
    organization_id: Optional[str] = None,
    expected_status: Optional[EnrollmentStatus | str] = None,
) -> Enrollment:
    act = coerce_action(action)
    expected = None
    if expected_status is not None:
        try:
            expected = EnrollmentStatus(expected_status)
        except ValueError:
            raise ValidationError(f"Unknown status: {expected_status}")

    try:
        with store.transaction() as tx:
            enrollment = load_enrollment(tx, enrollment_id, organization_id)
            updated = transition_in(tx, enrollment, act, actor, reason, expected_status=expected)
    except (IllegalTransitionError, ConflictError) as exc:
        logger.info(
            "transition refused enrollment_id=%s action=%s code=%s",
            enrollment_id,
            act.value,
            exc.code,
        )
        raise

    logger.info(
        "enrollment transitioned enrollment_id=%s action=%s from=%s to=%s actor=%s:%s",
        updated.id,
        act.value,
        enrollment.status.value,
        updated.status.value,
        actor.type.value,
        actor.id,
    )
    return updated


@returns_result
def create_enrollment(
    store: Store,
    *,
    organization_id: str,
    campaign_id: str,
    shopper_id: str,
    order_id: str,
    order_value: int,
    order_date: Optional[datetime] = None,
    quantity: int = 1,
    submission_deadline: Optional[datetime] = None,
    actor: Optional[Actor] = None,
) -> Enrollment:
    if not (shopper_id or "").strip():
        raise ValidationError("Shopper is required")
    if not (order_id or "").strip():
        raise ValidationError("Order ID is required")

    now = _utcnow()
    if submission_deadline is not None and submission_deadline.tzinfo is None:
        submission_deadline = submission_deadline.replace(tzinfo=timezone.utc)
    if submission_deadline is not None and submission_deadline <= now:
        raise ValidationError("Submission deadline must be in the future")

    actor = actor or SYSTEM_ACTOR
    with store.transaction() as tx:
        campaign = tx.get_campaign(campaign_id)
        if campaign is None or campaign.organization_id != organization_id:
            raise NotFoundError.for_resource("Campaign")

        # rates are locked here; later campaign edits never touch this enrollment
        payout = calculate_payout(
            campaign.payout_rule(settings.DEFAULT_PAYOUT_AMOUNT),
            order_value,
            quantity,
            platform_fee_percent=settings.PLATFORM_FEE_PERCENT,
            gst_percent=settings.GST_PERCENT,
            currency=settings.CURRENCY,
        )

        enrollment = Enrollment(
            id=uuid4(),
            organization_id=organization_id,
            campaign_id=campaign.id,
            shopper_id=shopper_id.strip(),
            status=EnrollmentStatus.ENROLLED,
            order_id=order_id.strip(),
            order_value=order_value,
            order_date=order_date or now,
            quantity=payout.quantity,
            bill_rate=payout.payout_per_unit,
            bill_amount=payout.total_payout,
            platform_fee_percent=payout.platform_fee_percent,
            gst_percent=payout.gst_percent,
            platform_fee=payout.platform_fee,
            gst_amount=payout.gst_amount,
            net_payout=payout.net_payout,
            submission_deadline=submission_deadline,
            created_at=now,
            updated_at=now,
        )
        tx.insert_enrollment(enrollment)
        tx.append_transition(
            TransitionEntry(
                id=uuid4(),
                enrollment_id=enrollment.id,
                from_status=None,
                to_status=EnrollmentStatus.ENROLLED,
                action=None,
                actor_type=actor.type,
                actor_id=actor.id,
                actor_name=actor.name,
                reason="Enrollment created",
                created_at=now,
            )
        )
        ledger.create_hold(
            tx,
            organization_id=organization_id,
            campaign_id=campaign.id,
            enrollment_id=enrollment.id,
            amount=enrollment.bill_amount,
        )

    logger.info(
        "enrollment created enrollment_id=%s org=%s campaign_id=%s bill_amount=%s",
        enrollment.id,
        organization_id,
        campaign.id,
        enrollment.bill_amount,
    )
    return enrollment


@returns_result
def get_enrollment(store: Store, enrollment_id: UUID | str, *, organization_id: Optional[str] = None) -> Enrollment:
    with store.transaction() as tx:
        return load_enrollment(tx, enrollment_id, organization_id)


@returns_result
def list_enrollments(
    store: Store,
    organization_id: str,
    *,
    status: Optional[EnrollmentStatus | str] = None,
    limit: Optional[int] = None,
) -> list[Enrollment]:
    statuses = None
    if status is not None:
        try:
            statuses = [EnrollmentStatus(status)]
        except ValueError:
            raise ValidationError(f"Unknown status: {status}")
    with store.transaction() as tx:
        return tx.list_enrollments(organization_id, statuses=statuses, limit=limit)


@returns_result
def enrollment_stats(store: Store, organization_id: str) -> dict[str, Any]:
    with store.transaction() as tx:
        rows = tx.list_enrollments(organization_id)

    counts = {s: 0 for s in EnrollmentStatus}
    for e in rows:
        counts[e.status] += 1
    total = len(rows)
    approved = counts[EnrollmentStatus.APPROVED]

    return {
        "total": total,
        "pending": sum(counts[s] for s in PENDING_STATUSES),
        "awaiting_review": counts[EnrollmentStatus.AWAITING_REVIEW],
        "changes_requested": counts[EnrollmentStatus.CHANGES_REQUESTED],
        "approved": approved,
        "rejected": counts[EnrollmentStatus.REJECTED],
        "withdrawn": counts[EnrollmentStatus.WITHDRAWN],
        "expired": counts[EnrollmentStatus.EXPIRED],
        "approval_rate": round(approved * 100 / total) if total else 0,
    }


@returns_result
def get_transition_history(
    store: Store,
    enrollment_id: UUID | str,
    *,
    organization_id: Optional[str] = None,
) -> TransitionHistory:
    with store.transaction() as tx:
        enrollment = load_enrollment(tx, enrollment_id, organization_id)
        history = tx.list_transitions(enrollment.id)

    return TransitionHistory(
        enrollment_id=enrollment.id,
        current_status=enrollment.status,
        allowed_transitions=sorted_actions(allowed_actions(enrollment.status)),
        history=history,
    )


@returns_result
def extend_deadline(
    store: Store,
    enrollment_id: UUID | str,
    new_deadline: datetime,
    actor: Actor,
    reason: Optional[str] = None,
    *,
    organization_id: Optional[str] = None,
) -> Enrollment:
    if new_deadline.tzinfo is None:
        new_deadline = new_deadline.replace(tzinfo=timezone.utc)
    now = _utcnow()
    if new_deadline <= now:
        raise ValidationError("New deadline must be in the future")

    with store.transaction() as tx:
        enrollment = load_enrollment(tx, enrollment_id, organization_id)
        if enrollment.status in TERMINAL_STATUSES:
            raise IllegalTransitionError(
                f"Cannot extend the deadline of an enrollment that is {enrollment.status.value}"
            )
        if not tx.update_submission_deadline(
            enrollment.id,
            from_status=enrollment.status,
            deadline=new_deadline,
            updated_at=max(now, enrollment.updated_at),
        ):
            raise ConflictError()

    logger.info(
        "deadline extended enrollment_id=%s deadline=%s actor=%s:%s reason=%s",
        enrollment.id,
        new_deadline.isoformat(),
        actor.type.value,
        actor.id,
        reason,
    )
    return replace(enrollment, submission_deadline=new_deadline, updated_at=max(now, enrollment.updated_at))


@returns_result
def enrollment_pricing(
    store: Store,
    enrollment_id: UUID | str,
    *,
    organization_id: Optional[str] = None,
) -> PayoutBreakdown:
    """Breakdown from the enrollment's locked economics, not the campaign's current rule."""
    with store.transaction() as tx:
        e = load_enrollment(tx, enrollment_id, organization_id)

    return build_breakdown(
        order_value=e.order_value,
        quantity=e.quantity,
        payout_per_unit=e.bill_rate,
        platform_fee_percent=e.platform_fee_percent,
        gst_percent=e.gst_percent,
        currency=settings.CURRENCY,
    )
