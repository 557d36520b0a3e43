"""Approval state machine implementation.

Validates a decision against the operation's current state before the
engine attempts the guarded status flip in the store. The machine is pure:
it never touches the database, so the store's compare-and-swap stays the
only authority on who wins a race.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from uuid import UUID

from sopgate.core.errors import ConflictError, InvalidArgumentError
from .states import (
    OperationStatus,
    Decision,
    TransitionRule,
    can_transition,
    get_transition_rule,
)


class ApprovalStateMachine:
    """
    State machine for one pending operation.

    Manages transitions between operation states with:
    - Validation of valid transitions from the current state
    - Mandatory comment checks (rejections)
    - A transition record the engine copies into the audit trail
    """

    def __init__(self, operation_id: UUID, current_state: OperationStatus):
        """
        Initialize the state machine.

        Args:
            operation_id: ID of the pending operation
            current_state: Current status as read from the store
        """
        self.operation_id = operation_id
        self._state = OperationStatus(current_state)

    @property
    def state(self) -> OperationStatus:
        """Current state of the operation."""
        return self._state

    def validate(self, decision: Decision, comment: Optional[str] = None) -> TransitionRule:
        """
        Check a decision without applying it.

        Raises:
            ConflictError: If the operation already left PENDING
            InvalidArgumentError: If the decision needs a comment and none was given
        """
        decision = Decision(decision)
        rule = get_transition_rule(self._state, decision)
        if rule is None or not can_transition(self._state, decision):
            raise ConflictError(
                f"Cannot {decision.value.lower()} operation {self.operation_id}: "
                f"status is {self._state.value}",
                operation_id=self.operation_id,
                status=self._state.value,
            )

        if rule.requires_comment and not (comment and comment.strip()):
            raise InvalidArgumentError(
                f"Comments are required to {decision.value.lower()} an operation"
            )

        return rule

    def transition(
        self,
        decision: Decision,
        *,
        actor: str,
        comment: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Apply a decision to the in-memory state.

        Args:
            decision: The decision to apply
            actor: Who decided (approver display name or the system identity)
            comment: Approval note or rejection reason
            timestamp: Decision time, defaults to now (UTC)

        Returns:
            The transition record

        Raises:
            ConflictError: If the operation already left PENDING
            InvalidArgumentError: If a required comment is missing
        """
        rule = self.validate(decision, comment)

        record = {
            "operation_id": str(self.operation_id),
            "from_state": self._state.value,
            "to_state": rule.to_state.value,
            "decision": rule.decision.value,
            "actor": actor,
            "comment": comment,
            "executes_operation": rule.executes_operation,
            "timestamp": (timestamp or datetime.utcnow()).isoformat(),
        }
        self._state = rule.to_state
        return record
