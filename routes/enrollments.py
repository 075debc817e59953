# routes/enrollments.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.enrollments import bulk, service
from app.enrollments.model import EnrollmentAction
from app.store.base import Store
from deps.auth import get_current_user, CurrentUser
from deps.store import store_dep
from schemas import (
    ApproveRequest,
    BulkResultOut,
    BulkTransitionRequest,
    EnrollmentCreateRequest,
    EnrollmentOut,
    ExtendDeadlineRequest,
    PayoutBreakdownOut,
    ReasonRequest,
    TransitionHistoryOut,
    TransitionRequest,
)
from services.responses import respond
from services.roles import require_reviewer

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])
logger = logging.getLogger("hyprive.enrollments.http")


def _enrollment(e) -> EnrollmentOut:
    return EnrollmentOut.model_validate(e)


def _transition(
    store: Store,
    user: CurrentUser,
    enrollment_id: str,
    action: EnrollmentAction | str,
    reason: Optional[str] = None,
    expected_status: Optional[str] = None,
):
    result = service.apply_transition(
        store,
        enrollment_id,
        action,
        user.as_actor(),
        reason,
        organization_id=user.organization_id,
        expected_status=expected_status,
    )
    return respond(result, _enrollment)


@router.post("")
def create_enrollment(
    body: EnrollmentCreateRequest,
    user: CurrentUser = Depends(require_reviewer),
    store: Store = Depends(store_dep),
):
    result = service.create_enrollment(
        store,
        organization_id=user.organization_id,
        campaign_id=body.campaign_id,
        shopper_id=body.shopper_id,
        order_id=body.order_id,
        order_value=body.order_value,
        order_date=body.order_date,
        quantity=body.quantity,
        submission_deadline=body.submission_deadline,
        actor=user.as_actor(),
    )
    return respond(result, _enrollment, status_code=201)


@router.get("")
def list_enrollments(
    status: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(store_dep),
):
    result = service.list_enrollments(store, user.organization_id, status=status, limit=limit)
    return respond(result, lambda rows: [_enrollment(e) for e in rows])


@router.get("/stats")
def enrollment_stats(
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(store_dep),
):
    return respond(service.enrollment_stats(store, user.organization_id))


@router.post("/bulk")
def bulk_transition(
    body: BulkTransitionRequest,
    user: CurrentUser = Depends(require_reviewer),
    store: Store = Depends(store_dep),
):
    result = bulk.bulk_apply(
        store,
        body.ids,
        body.action,
        user.as_actor(),
        body.reason or body.remarks,
        organization_id=user.organization_id,
    )
    return respond(result, BulkResultOut.model_validate)


@router.get("/{enrollment_id}")
def get_enrollment(
    enrollment_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(store_dep),
):
    result = service.get_enrollment(store, enrollment_id, organization_id=user.organization_id)
    return respond(result, _enrollment)


@router.get("/{enrollment_id}/transitions")
def get_transitions(
    enrollment_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(store_dep),
):
    result = service.get_transition_history(store, enrollment_id, organization_id=user.organization_id)
    return respond(result, TransitionHistoryOut.model_validate)


@router.post("/{enrollment_id}/transitions")
def post_transition(
    enrollment_id: str,
    body: TransitionRequest,
    user: CurrentUser = Depends(require_reviewer),
    store: Store = Depends(store_dep),
):
    return _transition(store, user, enrollment_id, body.action, body.reason, body.expected_status)


@router.post("/{enrollment_id}/approve")
def approve(
    enrollment_id: str,
    body: Optional[ApproveRequest] = None,
    user: CurrentUser = Depends(require_reviewer),
    store: Store = Depends(store_dep),
):
    remarks = body.remarks if body else None
    return _transition(store, user, enrollment_id, EnrollmentAction.APPROVE, remarks)


@router.post("/{enrollment_id}/reject")
def reject(
    enrollment_id: str,
    body: ReasonRequest,
    user: CurrentUser = Depends(require_reviewer),
    store: Store = Depends(store_dep),
):
    return _transition(store, user, enrollment_id, EnrollmentAction.REJECT, body.reason)


@router.post("/{enrollment_id}/request-changes")
def request_changes(
    enrollment_id: str,
    body: ReasonRequest,
    user: CurrentUser = Depends(require_reviewer),
    store: Store = Depends(store_dep),
):
    return _transition(store, user, enrollment_id, EnrollmentAction.REQUEST_CHANGES, body.reason)


@router.post("/{enrollment_id}/withdraw")
def withdraw(
    enrollment_id: str,
    body: Optional[ReasonRequest] = None,
    user: CurrentUser = Depends(require_reviewer),
    store: Store = Depends(store_dep),
):
    reason = body.reason if body else None
    return _transition(store, user, enrollment_id, EnrollmentAction.WITHDRAW, reason)


@router.post("/{enrollment_id}/extend-deadline")
def extend_deadline(
    enrollment_id: str,
    body: ExtendDeadlineRequest,
    user: CurrentUser = Depends(require_reviewer),
    store: Store = Depends(store_dep),
):
    result = service.extend_deadline(
        store,
        enrollment_id,
        body.new_deadline,
        user.as_actor(),
        body.reason,
        organization_id=user.organization_id,
    )
    return respond(result, _enrollment)


@router.get("/{enrollment_id}/pricing")
def pricing(
    enrollment_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(store_dep),
):
    result = service.enrollment_pricing(store, enrollment_id, organization_id=user.organization_id)
    return respond(result, PayoutBreakdownOut.model_validate)
