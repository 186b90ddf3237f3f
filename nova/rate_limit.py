"""Persisted fixed-window rate limiting for metered tools."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from nova.db import Database

DAY_SECONDS = 86400


@dataclass(slots=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime


class RateLimiter:
    """Per-key counters stored in the database.

    The check-then-increment is not atomic across concurrent turns for the
    same caller; a small overshoot under a race is tolerated.
    """

    def __init__(self, db: Database, clock: Callable[[], datetime] | None = None) -> None:
        self._db = db
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def check(self, key: str, limit: int, window_seconds: int = DAY_SECONDS) -> RateLimitResult:
        count, reset_at = self._db.increment_rate_limit(key, window_seconds, self._clock())
        return RateLimitResult(
            allowed=count <= limit,
            remaining=max(0, limit - count),
            limit=limit,
            reset_at=reset_at,
        )

    def cleanup(self) -> int:
        """Drop expired buckets; returns how many were removed."""

        return self._db.delete_expired_rate_limits(self._clock())
