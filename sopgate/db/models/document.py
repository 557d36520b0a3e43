"""SOP document record.

Only the metadata of a stored document lives here. The file itself is kept
by the storage collaborator at ``file_path``.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, BigInteger, Uuid

from sopgate.db.base import Base


class Document(Base):
    __tablename__ = "documents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    file_name = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)

    category = Column(String(100), nullable=True, index=True)
    brand = Column(String(100), nullable=True, index=True)
    uploaded_by = Column(String(100), nullable=True)
    version = Column(String(50), nullable=False, default="v1.0")

    created_at = Column(DateTime, default=datetime.utcnow)
    modified_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Document {self.file_name} ({self.brand}/{self.category}) {self.version}>"
