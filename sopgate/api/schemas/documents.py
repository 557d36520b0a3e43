"""Document schemas."""

from datetime import datetime
from typing import Optional, Dict, Any
from uuid import UUID

from pydantic import Field

from sopgate.api.schemas.common import CamelModel


class DocumentResponse(CamelModel):
    id: UUID
    file_name: str
    file_path: str
    file_size: int
    category: Optional[str] = None
    brand: Optional[str] = None
    uploaded_by: Optional[str] = None
    version: str
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None


class ChangeRequestMeta(CamelModel):
    """Who asks for a change and whom it is routed to."""
    requested_by: str = Field(..., min_length=1, max_length=100)
    approver_id: Optional[UUID] = None
    comments: Optional[str] = None


class DocumentCreateRequest(ChangeRequestMeta):
    file_name: str = Field(..., min_length=1, max_length=255)
    file_path: str = Field(..., min_length=1, max_length=1024)
    file_size: int = Field(0, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    uploaded_by: Optional[str] = Field(None, max_length=100)
    version: str = Field("v1.0", min_length=1, max_length=50)

    def payload(self) -> Dict[str, Any]:
        """CREATE payload fields in their stored (camelCase) form."""
        return self.model_dump(
            by_alias=True,
            exclude={"requested_by", "approver_id", "comments"},
        )


class DocumentUpdateRequest(ChangeRequestMeta):
    file_name: Optional[str] = Field(None, min_length=1, max_length=255)
    file_path: Optional[str] = Field(None, min_length=1, max_length=1024)
    file_size: Optional[int] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    uploaded_by: Optional[str] = Field(None, max_length=100)
    version: Optional[str] = Field(None, min_length=1, max_length=50)

    def updates(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent."""
        return self.model_dump(
            by_alias=True,
            exclude_unset=True,
            exclude={"requested_by", "approver_id", "comments"},
        )
