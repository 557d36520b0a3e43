"""Pending operation kinds, states, decisions and transitions.

State Machine Diagram:

    ┌──────────┐
    │ PENDING  │ ← Initial state (change requested)
    └────┬─────┘
         │
         ├──────────────────────┬─────────────────────┐
         │ APPROVE (human)      │ AUTO_APPROVE        │ REJECT (comment
         │                      │ (sweeper, system)   │  required)
    ┌────▼─────┐          ┌─────▼────┐          ┌─────▼────┐
    │ APPROVED │          │ APPROVED │          │ REJECTED │
    └──────────┘          └──────────┘          └──────────┘

APPROVED and REJECTED are terminal. A row in a terminal state only exists
inside the transaction that decided it; the same transaction deletes it.
"""

from enum import Enum
from typing import Set, Dict, Optional, NamedTuple


class OperationKind(str, Enum):
    """The three supported change kinds, each applied to one document."""

    CREATE = "CREATE"   # new document from the proposed fields
    MODIFY = "MODIFY"   # field-level changes to an existing document
    DELETE = "DELETE"   # permanent removal of an existing document

    @property
    def requires_target(self) -> bool:
        return self is not OperationKind.CREATE


class OperationStatus(str, Enum):
    """Lifecycle states of a pending operation."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Decision(str, Enum):
    """Verdicts that move an operation out of PENDING."""

    APPROVE = "APPROVE"              # human approver
    REJECT = "REJECT"                # human approver, comment mandatory
    AUTO_APPROVE = "AUTO_APPROVE"    # sweeper, actor is the system identity


class ActionType(str, Enum):
    """Audit entry action types."""

    CREATE_REQUESTED = "CREATE_REQUESTED"
    MODIFY_REQUESTED = "MODIFY_REQUESTED"
    DELETE_REQUESTED = "DELETE_REQUESTED"

    CREATE_APPROVED = "CREATE_APPROVED"
    MODIFY_APPROVED = "MODIFY_APPROVED"
    DELETE_APPROVED = "DELETE_APPROVED"

    CREATE_REJECTED = "CREATE_REJECTED"
    MODIFY_REJECTED = "MODIFY_REJECTED"
    DELETE_REJECTED = "DELETE_REJECTED"

    CREATE_AUTO_APPROVED = "CREATE_AUTO_APPROVED"
    MODIFY_AUTO_APPROVED = "MODIFY_AUTO_APPROVED"
    DELETE_AUTO_APPROVED = "DELETE_AUTO_APPROVED"

    @classmethod
    def requested(cls, kind: OperationKind) -> "ActionType":
        return cls(f"{OperationKind(kind).value}_REQUESTED")

    @classmethod
    def for_decision(cls, kind: OperationKind, decision: Decision) -> "ActionType":
        suffix = {
            Decision.APPROVE: "APPROVED",
            Decision.REJECT: "REJECTED",
            Decision.AUTO_APPROVE: "AUTO_APPROVED",
        }[Decision(decision)]
        return cls(f"{OperationKind(kind).value}_{suffix}")


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: OperationStatus
    to_state: OperationStatus
    decision: Decision
    requires_comment: bool = False
    executes_operation: bool = False


# Define all valid transitions
TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(OperationStatus.PENDING, OperationStatus.APPROVED, Decision.APPROVE,
                   executes_operation=True),
    TransitionRule(OperationStatus.PENDING, OperationStatus.APPROVED, Decision.AUTO_APPROVE,
                   executes_operation=True),
    TransitionRule(OperationStatus.PENDING, OperationStatus.REJECTED, Decision.REJECT,
                   requires_comment=True),
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[OperationStatus, Set[Decision]] = {}
TRANSITION_TARGETS: Dict[tuple[OperationStatus, Decision], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.decision)
    TRANSITION_TARGETS[(rule.from_state, rule.decision)] = rule


TERMINAL_STATES: Set[OperationStatus] = {
    OperationStatus.APPROVED,
    OperationStatus.REJECTED,
}


def can_transition(from_state: OperationStatus, decision: Decision) -> bool:
    """Check if a decision is valid from the given state."""
    return decision in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(from_state: OperationStatus, decision: Decision) -> Optional[TransitionRule]:
    """Get the transition rule for a state/decision combination."""
    return TRANSITION_TARGETS.get((from_state, decision))


def get_target_state(from_state: OperationStatus, decision: Decision) -> Optional[OperationStatus]:
    """Get the target state for a decision."""
    rule = get_transition_rule(from_state, decision)
    return rule.to_state if rule else None
