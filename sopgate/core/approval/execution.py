"""Applies an approved operation to the document repository."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from sopgate.core.errors import ExecutionFailureError, NotFoundError
from sopgate.db.models import Document, PendingOperation
from sopgate.services.documents import DocumentRepository
from .payloads import CreatePayload, ModifyPayload, DeletePayload, parse_payload
from .states import OperationKind
from .store import PendingOperationStore

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """What an execution did, for the audit entry."""

    document_id: Optional[UUID]
    document: Dict[str, Any]
    changed_fields: Optional[Dict[str, Any]] = None


class OperationExecutor:
    """Payload interpreter: one branch per operation kind.

    Runs inside the decision transaction. Any error propagates so the caller
    rolls the transaction back and the operation stays PENDING.
    """

    def __init__(self, documents: DocumentRepository, store: PendingOperationStore):
        self.documents = documents
        self.store = store

    def execute(self, operation: PendingOperation) -> ExecutionResult:
        kind = OperationKind(operation.operation_kind)
        payload = parse_payload(kind, operation.proposed_payload)

        if kind is OperationKind.CREATE:
            return self._create(operation, payload)
        if kind is OperationKind.MODIFY:
            return self._modify(operation, payload)
        return self._delete(operation, payload)

    def _load_target(self, operation: PendingOperation) -> Document:
        try:
            return self.documents.find_by_id(operation.target_document_id)
        except NotFoundError as e:
            raise ExecutionFailureError(
                f"Target document of operation {operation.id} no longer exists",
                operation_id=operation.id,
            ) from e

    def _create(self, operation: PendingOperation, payload: CreatePayload) -> ExecutionResult:
        document = self.documents.create(**payload.document_fields())
        self.store.attach_document(operation.id, document.id)
        logger.info(f"Created document {document.id} ({document.file_name}) from operation {operation.id}")
        return ExecutionResult(
            document_id=document.id,
            document=self.documents.snapshot(document),
        )

    def _modify(self, operation: PendingOperation, payload: ModifyPayload) -> ExecutionResult:
        document = self._load_target(operation)
        changes = payload.attribute_changes()
        self.documents.update(document, changes)
        logger.info(
            f"Modified document {document.id} fields {sorted(payload.changes)} from operation {operation.id}"
        )
        return ExecutionResult(
            document_id=document.id,
            document=self.documents.snapshot(document),
            changed_fields={
                name: {"old": change.old, "new": change.new}
                for name, change in payload.changes.items()
            },
        )

    def _delete(self, operation: PendingOperation, payload: DeletePayload) -> ExecutionResult:
        document = self._load_target(operation)
        snapshot = self.documents.snapshot(document)
        self.documents.delete(document)
        logger.info(f"Deleted document {snapshot['id']} ({snapshot['fileName']}) from operation {operation.id}")
        return ExecutionResult(document_id=document.id, document=snapshot)
