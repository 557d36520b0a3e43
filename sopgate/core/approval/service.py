"""Approval engine.

Every change to a document goes through here: a proposal becomes a PENDING
operation, and a decision (human approve / reject or the sweeper's
auto-approve) flips its status, applies the change, writes the audit entry
and removes the operation in one transaction. Notifications and audit
retries are follow-ups that run only after that transaction commits.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable, Union
from uuid import UUID

from sqlalchemy.orm import Session

from sopgate.core.auth.approvers import ApproverDirectory
from sopgate.core.config import Settings, get_settings
from sopgate.core.errors import (
    ConflictError,
    ExecutionFailureError,
    InvalidArgumentError,
    NotFoundError,
)
from sopgate.db.models import Approver, PendingOperation
from sopgate.services.audit import AuditLog
from sopgate.services.documents import DocumentRepository
from sopgate.services.notifications import Notifier, NotificationEvent, get_notifier
from .execution import OperationExecutor, ExecutionResult
from .followups import FollowUpQueue
from .machine import ApprovalStateMachine
from .payloads import (
    MODIFIABLE_FIELDS,
    CreatePayload,
    DeletePayload,
    DocumentSnapshot,
    FieldChange,
    ModifyPayload,
    OperationPayload,
    parse_payload,
    payload_as_dict,
    serialize_payload,
)
from .states import ActionType, Decision, OperationKind, OperationStatus
from .store import PendingOperationStore

logger = logging.getLogger(__name__)


DECISION_EVENTS = {
    Decision.APPROVE: NotificationEvent.OPERATION_APPROVED,
    Decision.AUTO_APPROVE: NotificationEvent.OPERATION_AUTO_APPROVED,
    Decision.REJECT: NotificationEvent.OPERATION_REJECTED,
}


def enqueue_audit_retry(entry: Dict[str, Any]) -> None:
    """Hand an audit entry that failed to write over to the worker."""
    from sopgate.workers.approval_tasks import append_audit_entry

    append_audit_entry.delay(entry)


class ApprovalEngine:
    """
    Orchestrates proposals and decisions for pending operations.

    The engine owns the transaction of every call: it commits on success
    and rolls back on any error, so a failed decision leaves the operation
    PENDING and the documents untouched.
    """

    def __init__(
        self,
        db: Session,
        notifier: Optional[Notifier] = None,
        *,
        settings: Optional[Settings] = None,
        audit_retry: Optional[Callable[[Dict[str, Any]], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the engine.

        Args:
            db: Session the engine commits on
            notifier: Notification sink, defaults to the configured one
            settings: Settings override
            audit_retry: Receives audit entries whose write failed
            clock: Source of request and decision times (UTC)
        """
        self.db = db
        self.settings = settings or get_settings()
        self.notifier = notifier or get_notifier(self.settings)
        self.audit_retry = audit_retry or enqueue_audit_retry
        self._clock = clock or datetime.utcnow

        self.store = PendingOperationStore(db)
        self.documents = DocumentRepository(db)
        self.audit = AuditLog(db)
        self.approvers = ApproverDirectory(db)
        self.executor = OperationExecutor(self.documents, self.store)

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def propose(
        self,
        kind: OperationKind,
        target_document_id: Optional[UUID],
        payload: Union[OperationPayload, Dict[str, Any], str, None],
        requested_by: str,
        approver_hint: Optional[UUID] = None,
        comments: Optional[str] = None,
    ) -> PendingOperation:
        """
        Capture a change request as a PENDING operation.

        Args:
            kind: CREATE, MODIFY or DELETE
            target_document_id: Document to change (None for CREATE)
            payload: Kind-specific payload
            requested_by: Requesting user
            approver_hint: Approver to route the request to
            comments: Request notes

        Returns:
            The persisted operation

        Raises:
            NotFoundError: If a MODIFY / DELETE target does not exist
            InvalidArgumentError: If the payload or the arguments are malformed
        """
        kind = OperationKind(kind)
        if not requested_by or not requested_by.strip():
            raise InvalidArgumentError("requested_by is required")

        followups = FollowUpQueue()
        try:
            document = None
            if kind.requires_target:
                if target_document_id is None:
                    raise InvalidArgumentError(f"{kind.value} operations require a target document")
                document = self.documents.find_by_id(target_document_id)
            elif target_document_id is not None:
                raise InvalidArgumentError("CREATE operations cannot target an existing document")

            typed_payload = self._prepare_payload(kind, payload, document, comments)
            approver = self._resolve_approver(approver_hint)

            operation = PendingOperation(
                operation_kind=kind.value,
                target_document_id=document.id if document is not None else None,
                status=OperationStatus.PENDING.value,
                assigned_approver_id=approver.id if approver else None,
                proposed_payload=serialize_payload(typed_payload),
                requested_by=requested_by,
                requested_at=self._clock(),
            )
            self.store.create(operation)

            description = self._describe(kind, typed_payload, document)
            self._write_audit(
                followups,
                action=ActionType.requested(kind),
                document_id=operation.target_document_id,
                pending_operation_id=operation.id,
                actor_name=requested_by,
                comments=comments,
                document=description,
                details={"payload": payload_as_dict(typed_payload)},
            )

            recipient = (approver.email if approver else None) or self.settings.notification_fallback_recipient
            context = {
                "operation_id": str(operation.id),
                "operation_kind": kind.value,
                "document_name": description.get("fileName") or "",
                "requested_by": requested_by,
                "requested_at": operation.requested_at.isoformat(),
                "comments": comments or "",
                "approver_name": approver.display_name if approver else "",
                "review_url": f"{self.settings.public_base_url.rstrip('/')}/approvals/{operation.id}",
                "auto_approve_days": self.settings.approval_auto_approve_days,
            }

            self.db.commit()
        except Exception:
            followups.discard()
            self.db.rollback()
            raise

        logger.info(f"{kind.value} requested by {requested_by}: operation {operation.id}")
        followups.add(
            f"{NotificationEvent.APPROVAL_REQUESTED.value} notification for {operation.id}",
            self.notifier.notify,
            recipient,
            NotificationEvent.APPROVAL_REQUESTED,
            context,
        )
        followups.run()
        return operation

    def propose_create(
        self,
        fields: Dict[str, Any],
        requested_by: str,
        approver_hint: Optional[UUID] = None,
        comments: Optional[str] = None,
    ) -> PendingOperation:
        """Request a new document. ``fields`` uses the API's camelCase names."""
        return self.propose(OperationKind.CREATE, None, fields, requested_by, approver_hint, comments)

    def propose_modify(
        self,
        document_id: UUID,
        updates: Dict[str, Any],
        requested_by: str,
        approver_hint: Optional[UUID] = None,
        comments: Optional[str] = None,
    ) -> PendingOperation:
        """Request field updates; old values are taken from the live document."""
        payload = {"changes": {name: {"new": value} for name, value in updates.items()}}
        return self.propose(OperationKind.MODIFY, document_id, payload, requested_by, approver_hint, comments)

    def propose_delete(
        self,
        document_id: UUID,
        requested_by: str,
        reason: Optional[str] = None,
        approver_hint: Optional[UUID] = None,
    ) -> PendingOperation:
        return self.propose(
            OperationKind.DELETE, document_id, {"reason": reason}, requested_by, approver_hint, reason
        )

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(
        self,
        operation_id: UUID,
        actor: Union[Approver, str],
        decision: Decision,
        comments: Optional[str] = None,
    ) -> None:
        """
        Approve or reject an operation on behalf of an authenticated approver.

        Args:
            operation_id: Operation to decide
            actor: Authenticated approver (or its display name)
            decision: APPROVE or REJECT
            comments: Approval note, mandatory for REJECT

        Raises:
            NotFoundError: If the operation does not exist
            ConflictError: If the operation is no longer PENDING
            InvalidArgumentError: If a rejection has no comments
            ExecutionFailureError: If applying the change failed (stays PENDING)
        """
        decision = Decision(decision)
        if decision is Decision.AUTO_APPROVE:
            raise InvalidArgumentError("Auto-approval is reserved for the system sweeper")

        actor_name = actor.display_name if isinstance(actor, Approver) else actor
        if not actor_name:
            raise InvalidArgumentError("A deciding approver is required")

        self._decide(operation_id, actor_name, decision, comments)

    def approve(self, operation_id: UUID, actor: Union[Approver, str], comments: Optional[str] = None) -> None:
        self.decide(operation_id, actor, Decision.APPROVE, comments)

    def reject(self, operation_id: UUID, actor: Union[Approver, str], comments: Optional[str] = None) -> None:
        self.decide(operation_id, actor, Decision.REJECT, comments)

    def auto_approve(self, operation_id: UUID) -> bool:
        """
        Approve an operation on behalf of the system identity.

        Returns:
            True if this call approved the operation, False if it was already
            decided or no longer exists

        Raises:
            ExecutionFailureError: If applying the change failed (stays PENDING)
        """
        comment = f"Auto-approved after {self.settings.approval_auto_approve_days} days pending"
        try:
            self._decide(operation_id, self.settings.system_actor, Decision.AUTO_APPROVE, comment)
        except ConflictError:
            logger.info(f"Operation {operation_id} was decided before auto-approval")
            return False
        except NotFoundError:
            logger.info(f"Operation {operation_id} no longer exists, skipping auto-approval")
            return False
        return True

    def _decide(
        self,
        operation_id: UUID,
        actor_name: str,
        decision: Decision,
        comments: Optional[str],
    ) -> None:
        followups = FollowUpQueue()
        try:
            operation = self.store.find_by_id(operation_id)
            kind = OperationKind(operation.operation_kind)
            decided_at = self._clock()

            machine = ApprovalStateMachine(operation.id, OperationStatus(operation.status))
            record = machine.transition(decision, actor=actor_name, comment=comments, timestamp=decided_at)

            if not self.store.transition(operation.id, machine.state, actor_name, decided_at, comments):
                raise ConflictError(
                    f"Operation {operation.id} was already decided",
                    operation_id=operation.id,
                )

            result: Optional[ExecutionResult] = None
            if record["executes_operation"]:
                result = self._execute(operation)

            if result is not None:
                document_id = result.document_id
                description = result.document
            else:
                document_id = operation.target_document_id
                description = self._describe_pending(operation, kind)

            details: Dict[str, Any] = {"transition": record}
            if result is not None and result.changed_fields:
                details["changes"] = result.changed_fields

            self._write_audit(
                followups,
                action=ActionType.for_decision(kind, decision),
                document_id=document_id,
                pending_operation_id=operation.id,
                actor_name=actor_name,
                comments=comments,
                document=description,
                details=details,
            )

            recipient = self._requester_address(operation.requested_by)
            context = {
                "operation_id": str(operation.id),
                "operation_kind": kind.value,
                "document_name": description.get("fileName") or "",
                "requested_by": operation.requested_by,
                "reviewed_by": actor_name,
                "reviewed_at": decided_at.isoformat(),
                "comments": comments or "",
            }

            self.store.delete(operation.id)
            self.db.commit()
        except Exception:
            followups.discard()
            self.db.rollback()
            raise

        logger.info(f"Operation {operation_id} {machine.state.value} by {actor_name} ({decision.value})")
        event = DECISION_EVENTS[decision]
        followups.add(
            f"{event.value} notification for {operation_id}",
            self.notifier.notify,
            recipient,
            event,
            context,
        )
        followups.run()

    def _execute(self, operation: PendingOperation) -> ExecutionResult:
        try:
            return self.executor.execute(operation)
        except ExecutionFailureError:
            raise
        except Exception as e:
            logger.exception(f"Execution of operation {operation.id} failed")
            raise ExecutionFailureError(
                f"Failed to apply operation {operation.id}: {e}",
                operation_id=operation.id,
            ) from e

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_pending(self, approver_id: Optional[UUID] = None) -> List[PendingOperation]:
        return self.store.find_by_status(OperationStatus.PENDING, approver_id=approver_id)

    def get_pending(self, operation_id: UUID) -> PendingOperation:
        return self.store.find_by_id(operation_id)

    def get_payload(self, operation: PendingOperation) -> OperationPayload:
        return parse_payload(OperationKind(operation.operation_kind), operation.proposed_payload)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _prepare_payload(self, kind, payload, document, comments) -> OperationPayload:
        if kind is OperationKind.CREATE:
            return parse_payload(kind, payload)

        if kind is OperationKind.MODIFY:
            requested = parse_payload(kind, payload)
            effective: Dict[str, FieldChange] = {}
            for name, change in requested.changes.items():
                current = getattr(document, MODIFIABLE_FIELDS[name])
                if current == change.new:
                    continue
                effective[name] = FieldChange(old=current, new=change.new)
            if not effective:
                raise InvalidArgumentError("The requested changes do not differ from the current document")
            return ModifyPayload(changes=effective)

        reason = comments
        if isinstance(payload, DeletePayload):
            reason = payload.reason or reason
        elif isinstance(payload, dict):
            unknown = set(payload) - {"reason", "snapshot"}
            if unknown:
                raise InvalidArgumentError(f"Invalid DELETE payload: unknown fields {sorted(unknown)}")
            reason = payload.get("reason") or reason
        elif payload is not None:
            raise InvalidArgumentError("Invalid DELETE payload")

        # The snapshot always reflects the live document, never the caller's copy
        snapshot = DocumentSnapshot.model_validate(self.documents.snapshot(document))
        return DeletePayload(snapshot=snapshot, reason=reason)

    def _resolve_approver(self, approver_hint: Optional[UUID]) -> Optional[Approver]:
        if approver_hint is None:
            return self.approvers.next_available()
        approver = self.approvers.get_active(approver_hint)
        if approver is None:
            raise InvalidArgumentError(f"Unknown or inactive approver: {approver_hint}")
        return approver

    def _describe(self, kind, payload, document) -> Dict[str, Any]:
        if document is not None:
            return self.documents.snapshot(document)
        if isinstance(payload, CreatePayload):
            return {
                "fileName": payload.file_name,
                "brand": payload.brand,
                "category": payload.category,
            }
        return {}

    def _describe_pending(self, operation: PendingOperation, kind: OperationKind) -> Dict[str, Any]:
        """Descriptive fields for an operation that was not executed."""
        if operation.target_document_id is not None:
            document = self.documents.get(operation.target_document_id)
            if document is not None:
                return self.documents.snapshot(document)
        try:
            payload = parse_payload(kind, operation.proposed_payload)
        except InvalidArgumentError:
            logger.warning(f"Stored payload of operation {operation.id} is unreadable")
            return {}
        if isinstance(payload, DeletePayload):
            return payload_as_dict(payload)["snapshot"]
        return self._describe(kind, payload, None)

    def _requester_address(self, requested_by: str) -> str:
        if requested_by and "@" in requested_by:
            return requested_by
        return self.settings.notification_fallback_recipient

    def _write_audit(self, followups: FollowUpQueue, **entry: Any) -> None:
        """
        Write an audit entry inside a savepoint.

        If the write fails the savepoint is rolled back, the decision goes
        ahead, and the entry is handed to the audit retry after commit.
        """
        try:
            with self.db.begin_nested():
                self.audit.append(**entry)
        except Exception:
            logger.exception(
                f"Audit write failed for {entry.get('action')} on operation "
                f"{entry.get('pending_operation_id')}, queueing retry"
            )
            followups.add(
                f"audit retry for {entry.get('pending_operation_id')}",
                self.audit_retry,
                _serializable_entry(entry),
            )


def _serializable_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Audit entry arguments as JSON-safe values for the worker queue."""
    result = dict(entry)
    result["action"] = str(getattr(entry["action"], "value", entry["action"]))
    for key in ("document_id", "pending_operation_id"):
        if result.get(key) is not None:
            result[key] = str(result[key])
    return result
