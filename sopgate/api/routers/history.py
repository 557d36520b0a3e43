"""Audit history query API endpoints."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from sopgate.api.deps import get_db
from sopgate.api.schemas.common import PaginatedResponse
from sopgate.api.schemas.history import AuditEntryResponse
from sopgate.services.audit import AuditLog

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=PaginatedResponse[AuditEntryResponse])
def list_history(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    document_id: Optional[UUID] = None,
    pending_operation_id: Optional[UUID] = None,
    action: Optional[str] = None,
    actor_name: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    """
    List audit entries, newest first.

    Supports filtering by document, operation, action, actor and date range.
    """
    entries, total = AuditLog(db).list(
        document_id=document_id,
        pending_operation_id=pending_operation_id,
        action=action,
        actor_name=actor_name,
        start_date=start_date,
        end_date=end_date,
        page=page,
        per_page=per_page,
    )
    return PaginatedResponse[AuditEntryResponse].create(
        items=[AuditEntryResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        per_page=per_page,
    )
