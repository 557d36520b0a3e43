"""Audit trail model for SOP Gate.

This table is append-only. The ORM refuses to update or delete entries and
the PostgreSQL migration installs triggers that do the same at the database
level. Entries outlive both the pending operation and the document they
describe, so the document's descriptive fields are copied onto the entry.
"""

import uuid
from datetime import datetime
from typing import Optional, Dict, Any
from sqlalchemy import Column, String, DateTime, JSON, Text, Uuid, Index, event

from sopgate.db.base import Base


class ImmutableAuditEntryError(Exception):
    """Raised when code tries to modify or delete an audit entry."""


class AuditEntry(Base):
    """One recorded state transition of a pending operation."""
    __tablename__ = "audit_entries"
    __table_args__ = (
        Index("idx_audit_document_id", "document_id"),
        Index("idx_audit_pending_operation_id", "pending_operation_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_created_at", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    action = Column(String(50), nullable=False)

    # Nullable: CREATE requests have no document yet
    document_id = Column(Uuid, nullable=True)
    pending_operation_id = Column(Uuid, nullable=True)

    # Copied so the trail stays readable after the document is deleted
    document_file_name = Column(String(255), nullable=True)
    document_brand = Column(String(100), nullable=True)
    document_category = Column(String(100), nullable=True)

    actor_name = Column(String(255), nullable=False)
    comments = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<AuditEntry {self.action} op={self.pending_operation_id} by {self.actor_name}>"

    @classmethod
    def create_entry(
        cls,
        action: str,
        actor_name: str,
        *,
        document_id: Optional[uuid.UUID] = None,
        pending_operation_id: Optional[uuid.UUID] = None,
        comments: Optional[str] = None,
        document: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "AuditEntry":
        """
        Factory method to create a new audit entry.

        Args:
            action: ActionType value, e.g. 'DELETE_APPROVED'
            actor_name: Who performed the action ('system' for the sweeper)
            document_id: Affected document, if one exists
            pending_operation_id: Pending operation this entry belongs to
            comments: Request notes, approval notes or rejection reason
            document: Descriptive document fields (fileName, brand, category)
            details: Additional context
        """
        document = document or {}
        return cls(
            action=action,
            actor_name=actor_name,
            document_id=document_id,
            pending_operation_id=pending_operation_id,
            document_file_name=document.get("fileName"),
            document_brand=document.get("brand"),
            document_category=document.get("category"),
            comments=comments,
            details=details,
        )


@event.listens_for(AuditEntry, "before_update")
def _refuse_update(mapper, connection, target):
    raise ImmutableAuditEntryError(f"Audit entry {target.id} is immutable")


@event.listens_for(AuditEntry, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise ImmutableAuditEntryError(f"Audit entry {target.id} cannot be deleted")
