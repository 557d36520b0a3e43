"""Pending operation model.

One row per in-flight change request. Rows only ever exist while PENDING
(or inside the transaction that decides them): the decision transaction
deletes the row after the mutation and its audit entry are written.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Uuid, Index

from sopgate.db.base import Base


class PendingOperation(Base):
    """A proposed CREATE / MODIFY / DELETE awaiting a decision."""
    __tablename__ = "pending_operations"
    __table_args__ = (
        Index("idx_pending_status", "status"),
        Index("idx_pending_document_id", "target_document_id"),
        Index("idx_pending_kind", "operation_kind"),
        Index("idx_pending_requested_at", "requested_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    operation_kind = Column(String(20), nullable=False)

    # NULL for CREATE until the approved document exists
    target_document_id = Column(Uuid, nullable=True)

    status = Column(String(20), nullable=False, default="PENDING")

    # Routing hint only; any authenticated approver may decide
    assigned_approver_id = Column(Uuid, nullable=True)

    # Kind-specific JSON document (see sopgate.core.approval.payloads)
    proposed_payload = Column(Text, nullable=False)

    # Provenance
    requested_by = Column(String(100), nullable=False)
    requested_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Set together, only when leaving PENDING
    reviewed_by = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    comments = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<PendingOperation {self.operation_kind} {self.id} [{self.status}]>"
