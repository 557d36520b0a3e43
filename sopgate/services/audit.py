"""Append-only audit log of pending operation transitions."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from sopgate.db.models import AuditEntry

logger = logging.getLogger(__name__)


class AuditLog:
    """Writes and queries audit entries on the caller's session."""

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        action: str,
        document_id: Optional[UUID],
        pending_operation_id: Optional[UUID],
        actor_name: str,
        comments: Optional[str] = None,
        document: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEntry:
        """
        Record one state transition.

        Args:
            action: ActionType value
            document_id: Affected document (None for a CREATE request)
            pending_operation_id: Operation the entry belongs to
            actor_name: Requester, approver display name or the system identity
            comments: Free text attached to the transition
            document: Descriptive document fields copied onto the entry
            details: Additional JSON context

        Returns:
            The flushed entry
        """
        entry = AuditEntry.create_entry(
            action=str(getattr(action, "value", action)),
            actor_name=actor_name,
            document_id=document_id,
            pending_operation_id=pending_operation_id,
            comments=comments,
            document=document,
            details=details,
        )
        self.db.add(entry)
        self.db.flush()
        logger.debug(f"Audit {entry.action} for operation {pending_operation_id} by {actor_name}")
        return entry

    def list(
        self,
        document_id: Optional[UUID] = None,
        pending_operation_id: Optional[UUID] = None,
        action: Optional[str] = None,
        actor_name: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        per_page: int = 50,
    ) -> Tuple[List[AuditEntry], int]:
        """Entries matching the filters, newest first, with the total count."""
        query = self.db.query(AuditEntry)

        if document_id:
            query = query.filter(AuditEntry.document_id == document_id)

        if pending_operation_id:
            query = query.filter(AuditEntry.pending_operation_id == pending_operation_id)

        if action:
            query = query.filter(AuditEntry.action == str(getattr(action, "value", action)))

        if actor_name:
            query = query.filter(AuditEntry.actor_name == actor_name)

        if start_date:
            query = query.filter(AuditEntry.created_at >= start_date)

        if end_date:
            query = query.filter(AuditEntry.created_at <= end_date)

        total = query.count()
        entries = (
            query.order_by(AuditEntry.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return entries, total
