"""Auto-approval of operations left PENDING past the threshold."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Any
from uuid import UUID

from sqlalchemy.orm import sessionmaker

from sopgate.core.config import Settings, get_settings
from sopgate.services.notifications import Notifier
from .service import ApprovalEngine
from .states import OperationStatus
from .store import PendingOperationStore

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one sweep."""

    found: int = 0
    approved: List[UUID] = field(default_factory=list)
    skipped: List[UUID] = field(default_factory=list)
    failed: Dict[UUID, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "found": self.found,
            "approved": [str(op_id) for op_id in self.approved],
            "skipped": [str(op_id) for op_id in self.skipped],
            "failed": {str(op_id): error for op_id, error in self.failed.items()},
        }


class AutoApprovalSweeper:
    """
    Periodic sweep over stale PENDING operations.

    Each operation is auto-approved in its own session and transaction. A
    failure is logged and counted and the sweep moves on.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        notifier: Optional[Notifier] = None,
        *,
        settings: Optional[Settings] = None,
        audit_retry: Optional[Callable[[Dict[str, Any]], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.audit_retry = audit_retry
        self._clock = clock or datetime.utcnow

    @property
    def threshold(self) -> timedelta:
        return timedelta(days=self.settings.approval_auto_approve_days)

    def find_due(self, now: Optional[datetime] = None) -> List[UUID]:
        """Ids of PENDING operations requested before ``now - threshold``."""
        cutoff = (now or self._clock()) - self.threshold
        db = self.session_factory()
        try:
            operations = PendingOperationStore(db).find_by_status_older_than(
                OperationStatus.PENDING, cutoff
            )
            return [operation.id for operation in operations]
        finally:
            db.close()

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Auto-approve every operation that has waited past the threshold.

        Args:
            now: Reference time, defaults to the current UTC time

        Returns:
            Counts and ids per outcome
        """
        result = SweepResult()
        due = self.find_due(now)
        result.found = len(due)
        if not due:
            logger.debug("Auto-approval sweep found no stale operations")
            return result

        logger.info(f"Auto-approval sweep found {len(due)} stale operation(s)")
        for operation_id in due:
            db = self.session_factory()
            try:
                engine = ApprovalEngine(
                    db,
                    self.notifier,
                    settings=self.settings,
                    audit_retry=self.audit_retry,
                    clock=self._clock,
                )
                if engine.auto_approve(operation_id):
                    result.approved.append(operation_id)
                else:
                    result.skipped.append(operation_id)
            except Exception as e:
                logger.exception(f"Auto-approval failed for operation {operation_id}")
                result.failed[operation_id] = str(e)
            finally:
                db.close()

        logger.info(
            f"Auto-approval sweep done: {len(result.approved)} approved, "
            f"{len(result.skipped)} skipped, {len(result.failed)} failed"
        )
        return result
