"""Approver authentication for approve / reject requests."""

import logging

from sopgate.core.errors import UnauthorizedError
from sopgate.core.security import verify_password, dummy_verify
from sopgate.db.models import Approver
from .approvers import ApproverDirectory
from .limiter import AttemptLimiter

logger = logging.getLogger(__name__)


class Authenticator:
    """Verifies approver credentials behind the attempt limiter."""

    def __init__(self, directory: ApproverDirectory, limiter: AttemptLimiter):
        self.directory = directory
        self.limiter = limiter

    def authenticate(self, username: str, password: str) -> Approver:
        """
        Authenticate an approver.

        Steps, in order: attempt limiter, lookup (unknown or inactive fails),
        password verification, and on success clearing the recorded attempts.

        Args:
            username: Approver username
            password: Plain-text password

        Returns:
            The authenticated approver

        Raises:
            UnauthorizedError: For every failure cause, with the same message
        """
        username = username or ""

        if not self.limiter.is_allowed(username):
            logger.warning(f"Authentication throttled for approver {username!r}")
            raise UnauthorizedError()

        approver = self.directory.find_by_username(username)
        if approver is None or not approver.is_active:
            dummy_verify()
            logger.warning(f"Authentication failed for approver {username!r}")
            raise UnauthorizedError()

        if not verify_password(password, approver.password_hash):
            logger.warning(f"Authentication failed for approver {username!r}")
            raise UnauthorizedError()

        self.limiter.clear(username)
        return approver
