"""Approver lookup and provisioning."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from sopgate.core.errors import InvalidArgumentError
from sopgate.core.security import get_password_hash
from sopgate.db.models import Approver

logger = logging.getLogger(__name__)


class ApproverDirectory:
    """Read access to approvers plus the creation path used by seeding."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_username(self, username: str) -> Optional[Approver]:
        if not username:
            return None
        return self.db.query(Approver).filter(Approver.username == username).first()

    def get(self, approver_id: UUID) -> Optional[Approver]:
        return self.db.get(Approver, approver_id)

    def get_active(self, approver_id: UUID) -> Optional[Approver]:
        approver = self.get(approver_id)
        if approver is None or not approver.is_active:
            return None
        return approver

    def list_active(self) -> List[Approver]:
        return (
            self.db.query(Approver)
            .filter(Approver.is_active == True)  # noqa: E712
            .order_by(Approver.created_at.asc(), Approver.username.asc())
            .all()
        )

    def next_available(self) -> Optional[Approver]:
        """Approver assigned when a request names none: the first active one."""
        active = self.list_active()
        return active[0] if active else None

    def create_approver(
        self,
        username: str,
        password: str,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        is_active: bool = True,
    ) -> Approver:
        """
        Create an approver with a bcrypt-hashed password.

        Raises:
            InvalidArgumentError: If the username is taken or a field is blank
        """
        if not username or not username.strip():
            raise InvalidArgumentError("Approver username is required")
        if not password:
            raise InvalidArgumentError("Approver password is required")
        if self.find_by_username(username) is not None:
            raise InvalidArgumentError(f"Approver '{username}' already exists")

        approver = Approver(
            username=username,
            password_hash=get_password_hash(password),
            name=name,
            email=email,
            is_active=is_active,
        )
        self.db.add(approver)
        self.db.flush()
        logger.info(f"Created approver {username}")
        return approver
