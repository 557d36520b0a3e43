"""Best-effort work that runs after a unit of work commits."""

import logging
from typing import Any, Callable, List, Tuple

logger = logging.getLogger(__name__)


class FollowUpQueue:
    """
    Collects side effects during a transaction and runs them after commit.

    A failing follow-up is logged and skipped; it never reaches the caller
    and never stops the remaining follow-ups.
    """

    def __init__(self):
        self._tasks: List[Tuple[str, Callable[..., Any], tuple, dict]] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def add(self, description: str, func: Callable[..., Any], *args, **kwargs) -> None:
        self._tasks.append((description, func, args, kwargs))

    def discard(self) -> None:
        """Drop queued work (the transaction rolled back)."""
        self._tasks.clear()

    def run(self) -> int:
        """
        Run and clear the queue.

        Returns:
            Number of follow-ups that failed
        """
        tasks, self._tasks = self._tasks, []
        failures = 0
        for description, func, args, kwargs in tasks:
            try:
                func(*args, **kwargs)
            except Exception:
                failures += 1
                logger.exception(f"Follow-up failed: {description}")
        return failures
