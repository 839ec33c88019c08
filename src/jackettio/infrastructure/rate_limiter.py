"""Per-client fixed-window request counter for inbound admission control."""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from jackettio.domain.entities.errors import RateLimited

log = structlog.get_logger(__name__)

# How many hits between full sweeps of expired client entries.
_GC_INTERVAL = 256


@dataclass
class RateLimitWindowEntry:
    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float  # seconds until the key's window resets

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil(self.reset_after))


class FixedWindowRateLimiter:
    """Counts hits per key inside fixed windows of ``window_seconds``.

    ``hit()`` is synchronous: check-and-increment never yields to the event
    loop, so concurrent requests cannot undercount a key. Rejected hits
    are counted too.

    Args:
        window_seconds: Window length.
        max_requests: Hits admitted per key and window. ``<= 0`` disables
            limiting.
        clock: Monotonic clock (injectable for tests).
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._entries: dict[str, RateLimitWindowEntry] = {}
        self._hits_since_gc = 0

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def hit(self, key: str) -> RateLimitDecision:
        if not self.enabled:
            return RateLimitDecision(True, 0, 0, 0.0)

        now = self._clock()
        entry = self._entries.get(key)
        if entry is None or now - entry.window_start >= self.window_seconds:
            entry = RateLimitWindowEntry(count=0, window_start=now)
            self._entries[key] = entry
        entry.count += 1

        self._hits_since_gc += 1
        if self._hits_since_gc >= _GC_INTERVAL:
            self._hits_since_gc = 0
            self.evict_expired(now)

        reset_after = max(0.0, entry.window_start + self.window_seconds - now)
        allowed = entry.count <= self.max_requests
        if not allowed:
            log.warning(
                "rate_limit_exceeded",
                key=key,
                count=entry.count,
                limit=self.max_requests,
                reset_after=round(reset_after, 1),
            )
        return RateLimitDecision(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - entry.count),
            reset_after=reset_after,
        )

    def acquire(self, key: str) -> RateLimitDecision:
        """Like ``hit`` but raises on rejection.

        Raises:
            RateLimited: *key* is over its budget; ``retry_after`` is whole
                seconds until its window resets.
        """
        decision = self.hit(key)
        if not decision.allowed:
            raise RateLimited(decision.retry_after_seconds)
        return decision

    def evict_expired(self, now: float | None = None) -> int:
        """Drop entries whose window has elapsed; returns how many."""
        now = self._clock() if now is None else now
        stale = [
            k
            for k, e in self._entries.items()
            if now - e.window_start >= self.window_seconds
        ]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)
