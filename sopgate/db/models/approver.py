import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Uuid

from sopgate.db.base import Base


class Approver(Base):
    """An identity allowed to decide pending operations."""
    __tablename__ = "approvers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)  # bcrypt
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return self.name or self.username

    def __repr__(self) -> str:
        return f"<Approver {self.username}{'' if self.is_active else ' (inactive)'}>"
