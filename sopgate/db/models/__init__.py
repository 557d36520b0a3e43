"""Database models for SOP Gate."""

from sopgate.db.models.document import Document
from sopgate.db.models.approver import Approver
from sopgate.db.models.pending_operation import PendingOperation
from sopgate.db.models.audit import AuditEntry, ImmutableAuditEntryError

__all__ = [
    "Document",
    "Approver",
    "PendingOperation",
    "AuditEntry",
    "ImmutableAuditEntryError",
]
