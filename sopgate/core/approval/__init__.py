"""Pending operation approval engine.

Provides:
- Operation kinds, states and transition rules
- Typed payloads per operation kind
- The approval engine (propose / decide / auto-approve)
- The auto-approval sweeper
"""

from sopgate.core.approval.states import (
    OperationKind,
    OperationStatus,
    Decision,
    ActionType,
    TransitionRule,
    TRANSITION_RULES,
    can_transition,
    get_target_state,
)
from sopgate.core.approval.machine import ApprovalStateMachine
from sopgate.core.approval.payloads import (
    CreatePayload,
    ModifyPayload,
    DeletePayload,
    FieldChange,
    DocumentSnapshot,
    parse_payload,
    serialize_payload,
)
from sopgate.core.approval.store import PendingOperationStore
from sopgate.core.approval.execution import OperationExecutor
from sopgate.core.approval.followups import FollowUpQueue
from sopgate.core.approval.service import ApprovalEngine
from sopgate.core.approval.sweeper import AutoApprovalSweeper, SweepResult

__all__ = [
    "OperationKind",
    "OperationStatus",
    "Decision",
    "ActionType",
    "TransitionRule",
    "TRANSITION_RULES",
    "can_transition",
    "get_target_state",
    "ApprovalStateMachine",
    "CreatePayload",
    "ModifyPayload",
    "DeletePayload",
    "FieldChange",
    "DocumentSnapshot",
    "parse_payload",
    "serialize_payload",
    "PendingOperationStore",
    "OperationExecutor",
    "FollowUpQueue",
    "ApprovalEngine",
    "AutoApprovalSweeper",
    "SweepResult",
]
