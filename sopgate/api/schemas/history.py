"""Audit history schemas."""

from datetime import datetime
from typing import Optional, Dict, Any
from uuid import UUID

from sopgate.api.schemas.common import CamelModel


class AuditEntryResponse(CamelModel):
    id: UUID
    action: str
    document_id: Optional[UUID] = None
    pending_operation_id: Optional[UUID] = None
    document_file_name: Optional[str] = None
    document_brand: Optional[str] = None
    document_category: Optional[str] = None
    actor_name: str
    comments: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime
