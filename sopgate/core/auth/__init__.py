"""Approver authentication."""

from sopgate.core.auth.limiter import AttemptLimiter
from sopgate.core.auth.approvers import ApproverDirectory
from sopgate.core.auth.authenticator import Authenticator

__all__ = [
    "AttemptLimiter",
    "ApproverDirectory",
    "Authenticator",
]
