"""Persistence of pending operations.

The store works on the caller's session and never commits; the approval
engine owns transaction boundaries. :meth:`PendingOperationStore.transition`
is the single conditional write that decides which concurrent decision wins.
"""

import logging
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from sopgate.core.errors import NotFoundError
from sopgate.db.models import PendingOperation
from .states import OperationStatus

logger = logging.getLogger(__name__)


class PendingOperationStore:
    """Durable home of PENDING operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, operation: PendingOperation) -> PendingOperation:
        """Add a new operation to the session and flush it."""
        if operation.status is None:
            operation.status = OperationStatus.PENDING.value
        self.db.add(operation)
        self.db.flush()
        return operation

    def get(self, operation_id: UUID) -> Optional[PendingOperation]:
        return self.db.get(PendingOperation, operation_id)

    def find_by_id(self, operation_id: UUID) -> PendingOperation:
        """
        Load an operation.

        Raises:
            NotFoundError: If no operation with this id exists
        """
        operation = self.get(operation_id)
        if operation is None:
            raise NotFoundError("Pending operation", operation_id)
        return operation

    def find_by_status(
        self,
        status: OperationStatus,
        approver_id: Optional[UUID] = None,
    ) -> List[PendingOperation]:
        """Operations in a status, oldest request first."""
        query = select(PendingOperation).where(
            PendingOperation.status == OperationStatus(status).value
        )
        if approver_id is not None:
            query = query.where(PendingOperation.assigned_approver_id == approver_id)
        query = query.order_by(PendingOperation.requested_at.asc())
        return list(self.db.scalars(query))

    def find_by_status_older_than(
        self,
        status: OperationStatus,
        cutoff: datetime,
    ) -> List[PendingOperation]:
        """Operations in a status requested strictly before ``cutoff``."""
        query = (
            select(PendingOperation)
            .where(PendingOperation.status == OperationStatus(status).value)
            .where(PendingOperation.requested_at < cutoff)
            .order_by(PendingOperation.requested_at.asc())
        )
        return list(self.db.scalars(query))

    def find_for_document(self, document_id: UUID) -> List[PendingOperation]:
        """Pending operations that target a document."""
        query = (
            select(PendingOperation)
            .where(PendingOperation.target_document_id == document_id)
            .where(PendingOperation.status == OperationStatus.PENDING.value)
            .order_by(PendingOperation.requested_at.asc())
        )
        return list(self.db.scalars(query))

    def transition(
        self,
        operation_id: UUID,
        to_status: OperationStatus,
        reviewed_by: str,
        reviewed_at: datetime,
        comments: Optional[str] = None,
    ) -> bool:
        """
        Move an operation out of PENDING if, and only if, it is still PENDING.

        Status, reviewer, review time and comments are written by one
        conditional UPDATE. Of any number of concurrent callers at most one
        sees ``True``.

        Args:
            operation_id: Operation to decide
            to_status: APPROVED or REJECTED
            reviewed_by: Deciding actor
            reviewed_at: Decision time
            comments: Approval note or rejection reason

        Returns:
            True if this call performed the transition
        """
        result = self.db.execute(
            update(PendingOperation)
            .where(PendingOperation.id == operation_id)
            .where(PendingOperation.status == OperationStatus.PENDING.value)
            .values(
                status=OperationStatus(to_status).value,
                reviewed_by=reviewed_by,
                reviewed_at=reviewed_at,
                comments=comments,
            )
            .execution_options(synchronize_session="fetch")
        )
        won = result.rowcount == 1
        if not won:
            logger.info(f"Status flip lost for operation {operation_id}")
        return won

    def attach_document(self, operation_id: UUID, document_id: UUID) -> None:
        """Record the document a CREATE produced on its operation."""
        self.db.execute(
            update(PendingOperation)
            .where(PendingOperation.id == operation_id)
            .values(target_document_id=document_id)
            .execution_options(synchronize_session="fetch")
        )

    def delete(self, operation_id: UUID) -> None:
        self.db.execute(
            delete(PendingOperation)
            .where(PendingOperation.id == operation_id)
            .execution_options(synchronize_session="fetch")
        )
