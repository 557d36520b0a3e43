"""Document API endpoints.

Reads go straight to the repository. Every write only files a pending
operation; the document changes once the operation is approved.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from sopgate.api.deps import get_db, get_engine
from sopgate.api.schemas.approvals import PendingOperationResponse
from sopgate.api.schemas.documents import (
    DocumentResponse,
    DocumentCreateRequest,
    DocumentUpdateRequest,
)
from sopgate.core.approval import ApprovalEngine
from sopgate.core.errors import InvalidArgumentError
from sopgate.services.documents import DocumentRepository

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("", response_model=List[DocumentResponse])
def list_documents(
    brand: Optional[str] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """List documents, optionally filtered by brand and category."""
    documents = DocumentRepository(db).list(brand=brand, category=category)
    return [DocumentResponse.model_validate(d) for d in documents]


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(document_id: UUID, db: Session = Depends(get_db)):
    return DocumentResponse.model_validate(DocumentRepository(db).find_by_id(document_id))


@router.get("/{document_id}/pending", response_model=List[PendingOperationResponse])
def list_document_pending(
    document_id: UUID,
    engine: ApprovalEngine = Depends(get_engine),
):
    """Pending operations waiting on a document."""
    engine.documents.find_by_id(document_id)
    operations = engine.store.find_for_document(document_id)
    return [PendingOperationResponse.model_validate(op) for op in operations]


@router.post("", response_model=PendingOperationResponse, status_code=status.HTTP_202_ACCEPTED)
def request_create(
    body: DocumentCreateRequest,
    engine: ApprovalEngine = Depends(get_engine),
):
    """Request a new document."""
    operation = engine.propose_create(
        body.payload(),
        requested_by=body.requested_by,
        approver_hint=body.approver_id,
        comments=body.comments,
    )
    return PendingOperationResponse.model_validate(operation)


@router.patch("/{document_id}", response_model=PendingOperationResponse, status_code=status.HTTP_202_ACCEPTED)
def request_modify(
    document_id: UUID,
    body: DocumentUpdateRequest,
    engine: ApprovalEngine = Depends(get_engine),
):
    """Request field changes to a document."""
    updates = body.updates()
    if not updates:
        raise InvalidArgumentError("No document fields to change")
    operation = engine.propose_modify(
        document_id,
        updates,
        requested_by=body.requested_by,
        approver_hint=body.approver_id,
        comments=body.comments,
    )
    return PendingOperationResponse.model_validate(operation)


@router.delete("/{document_id}", response_model=PendingOperationResponse, status_code=status.HTTP_202_ACCEPTED)
def request_delete(
    document_id: UUID,
    requested_by: str = Query(..., min_length=1, max_length=100),
    reason: Optional[str] = None,
    approver_id: Optional[UUID] = None,
    engine: ApprovalEngine = Depends(get_engine),
):
    """Request permanent removal of a document."""
    operation = engine.propose_delete(
        document_id,
        requested_by=requested_by,
        reason=reason,
        approver_hint=approver_id,
    )
    return PendingOperationResponse.model_validate(operation)
