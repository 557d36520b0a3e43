"""Approval workflow API endpoints."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from sopgate.api.deps import get_engine, get_authenticator
from sopgate.api.schemas.approvals import (
    PendingOperationResponse,
    DecisionRequest,
    DecisionResponse,
)
from sopgate.core.approval import ApprovalEngine, Decision, OperationStatus
from sopgate.core.auth import Authenticator

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("/pending", response_model=List[PendingOperationResponse])
def list_pending(
    approver_id: Optional[UUID] = None,
    engine: ApprovalEngine = Depends(get_engine),
):
    """List operations awaiting a decision, oldest first."""
    return [PendingOperationResponse.model_validate(op) for op in engine.list_pending(approver_id)]


@router.get("/{operation_id}", response_model=PendingOperationResponse)
def get_pending(operation_id: UUID, engine: ApprovalEngine = Depends(get_engine)):
    return PendingOperationResponse.model_validate(engine.get_pending(operation_id))


@router.post("/{operation_id}/approve", response_model=DecisionResponse)
def approve_operation(
    operation_id: UUID,
    body: DecisionRequest,
    engine: ApprovalEngine = Depends(get_engine),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Approve and apply a pending operation."""
    approver = authenticator.authenticate(body.username, body.password)
    engine.decide(operation_id, approver, Decision.APPROVE, body.comments)
    return DecisionResponse(
        operation_id=operation_id,
        status=OperationStatus.APPROVED.value,
        message="Operation approved and applied",
    )


@router.post("/{operation_id}/reject", response_model=DecisionResponse)
def reject_operation(
    operation_id: UUID,
    body: DecisionRequest,
    engine: ApprovalEngine = Depends(get_engine),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Reject a pending operation. Comments are mandatory."""
    approver = authenticator.authenticate(body.username, body.password)
    engine.decide(operation_id, approver, Decision.REJECT, body.comments)
    return DecisionResponse(
        operation_id=operation_id,
        status=OperationStatus.REJECTED.value,
        message="Operation rejected",
    )
