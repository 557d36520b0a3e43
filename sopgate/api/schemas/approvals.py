"""Pending operation and decision schemas."""

import json
from datetime import datetime
from typing import Optional, Dict, Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from sopgate.api.schemas.common import CamelModel


class PendingOperationResponse(CamelModel):
    id: UUID
    operation_kind: str
    target_document_id: Optional[UUID] = None
    status: str
    assigned_approver_id: Optional[UUID] = None
    proposed_payload: Dict[str, Any]
    requested_by: str
    requested_at: datetime
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    comments: Optional[str] = None

    @field_validator("proposed_payload", mode="before")
    @classmethod
    def _decode_payload(cls, value):
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value


class DecisionRequest(BaseModel):
    """Approver credentials travel with every decision."""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    comments: Optional[str] = None


class DecisionResponse(CamelModel):
    operation_id: UUID
    status: str
    message: str
