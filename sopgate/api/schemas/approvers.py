from datetime import datetime
from typing import Optional
from uuid import UUID

from sopgate.api.schemas.common import CamelModel


class ApproverResponse(CamelModel):
    id: UUID
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
