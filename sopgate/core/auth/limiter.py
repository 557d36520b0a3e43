"""In-process sliding window limiter for approver authentication.

Attempts are kept per identity in a bounded deque. Identities are spread
over a fixed number of lock shards, so concurrent logins for different
usernames rarely contend while appends and prunes for one username are
serialized. Identities whose attempts have all left the window are
dropped from their shard at most once per window, on the next call that
lands in that shard.
"""

import hashlib
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, List, Optional


DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW = timedelta(minutes=15)
DEFAULT_SHARDS = 16


class _Shard:
    __slots__ = ("lock", "attempts", "next_sweep")

    def __init__(self):
        self.lock = threading.Lock()
        self.attempts: Dict[str, Deque[datetime]] = {}
        self.next_sweep: Optional[datetime] = None


class AttemptLimiter:
    """
    Attempt ceiling per identity within a trailing window.

    Every call to :meth:`is_allowed` prunes expired attempts first. An allowed
    call records its own timestamp, whether or not the caller then succeeds.
    A denied call records nothing, so a locked-out identity becomes usable
    again once its oldest recorded attempt leaves the window.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window: timedelta = DEFAULT_WINDOW,
        shards: int = DEFAULT_SHARDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if window <= timedelta(0):
            raise ValueError("window must be positive")
        if shards <= 0:
            raise ValueError("shards must be positive")

        self.max_attempts = max_attempts
        self.window = window
        self._clock = clock or datetime.utcnow
        self._shards: List[_Shard] = [_Shard() for _ in range(shards)]

    @classmethod
    def from_settings(cls, settings, clock: Optional[Callable[[], datetime]] = None) -> "AttemptLimiter":
        return cls(
            max_attempts=settings.auth_max_attempts,
            window=timedelta(minutes=settings.auth_window_minutes),
            shards=settings.auth_limiter_shards,
            clock=clock,
        )

    def _shard_for(self, identity: str) -> _Shard:
        # Stable across processes, unlike hash()
        digest = hashlib.sha256(identity.encode("utf-8")).digest()
        return self._shards[int.from_bytes(digest[:4], "big") % len(self._shards)]

    def _prune(self, attempts: Deque[datetime], now: datetime) -> None:
        cutoff = now - self.window
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()

    def _sweep(self, shard: _Shard, now: datetime) -> None:
        # Caller holds shard.lock
        if shard.next_sweep is not None and now < shard.next_sweep:
            return
        cutoff = now - self.window
        expired = [identity for identity, attempts in shard.attempts.items() if not attempts or attempts[-1] <= cutoff]
        for identity in expired:
            del shard.attempts[identity]
        shard.next_sweep = now + self.window

    def is_allowed(self, identity: str) -> bool:
        """
        Check the identity against the ceiling and record this attempt.

        Args:
            identity: Username being authenticated

        Returns:
            False if the identity already used up its attempts in the window
        """
        shard = self._shard_for(identity)
        now = self._clock()
        with shard.lock:
            self._sweep(shard, now)
            attempts = shard.attempts.get(identity)
            if attempts is None:
                attempts = shard.attempts[identity] = deque(maxlen=self.max_attempts)
            self._prune(attempts, now)
            if len(attempts) >= self.max_attempts:
                return False
            attempts.append(now)
            return True

    def clear(self, identity: str) -> None:
        """Forget every recorded attempt for an identity."""
        shard = self._shard_for(identity)
        with shard.lock:
            shard.attempts.pop(identity, None)

    def attempts(self, identity: str) -> int:
        """Number of attempts currently inside the window."""
        shard = self._shard_for(identity)
        with shard.lock:
            attempts = shard.attempts.get(identity)
            if attempts is None:
                return 0
            self._prune(attempts, self._clock())
            if not attempts:
                del shard.attempts[identity]
                return 0
            return len(attempts)

    def tracked_identities(self) -> int:
        """Number of identities currently holding state, expired or not."""
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.attempts)
        return total
