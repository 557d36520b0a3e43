"""Document repository.

Only approved operations reach this module: the approval executor is the
sole writer. Reads are open to the API for listings.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from sopgate.core.errors import NotFoundError
from sopgate.db.models import Document


class DocumentRepository:
    """CRUD over document records on the caller's session (no commits)."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> Document:
        now = datetime.utcnow()
        document = Document(created_at=now, modified_at=now, **fields)
        self.db.add(document)
        self.db.flush()
        return document

    def get(self, document_id: UUID) -> Optional[Document]:
        return self.db.get(Document, document_id)

    def find_by_id(self, document_id: UUID) -> Document:
        """
        Load a document.

        Raises:
            NotFoundError: If the document does not exist
        """
        document = self.get(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        return document

    def update(self, document: Document, changes: Dict[str, Any]) -> Document:
        """Apply attribute changes and bump ``modified_at``."""
        for attribute, value in changes.items():
            if not hasattr(Document, attribute):
                raise ValueError(f"Document has no attribute '{attribute}'")
            setattr(document, attribute, value)
        document.modified_at = datetime.utcnow()
        self.db.flush()
        return document

    def delete(self, document: Document) -> None:
        self.db.delete(document)
        self.db.flush()

    def list(
        self,
        brand: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[Document]:
        query = select(Document)
        if brand:
            query = query.where(Document.brand == brand)
        if category:
            query = query.where(Document.category == category)
        query = query.order_by(Document.brand, Document.category, Document.file_name)
        return list(self.db.scalars(query))

    @staticmethod
    def snapshot(document: Document) -> Dict[str, Any]:
        """Descriptive copy of a document using the API's field names."""
        return {
            "id": str(document.id),
            "fileName": document.file_name,
            "filePath": document.file_path,
            "fileSize": document.file_size,
            "category": document.category,
            "brand": document.brand,
            "uploadedBy": document.uploaded_by,
            "version": document.version,
        }
