from datetime import datetime, timedelta, timezone

from nova.db import Database
from nova.rate_limit import RateLimiter

START = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _limiter(tmp_path) -> tuple[RateLimiter, Clock]:
    db = Database(tmp_path / "nova.db")
    db.initialize()
    clock = Clock(START)
    return RateLimiter(db, clock=clock), clock


def test_allows_up_to_limit_then_blocks(tmp_path):
    limiter, _ = _limiter(tmp_path)

    results = [limiter.check("dalle:u1", 3) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[0].reset_at == START + timedelta(days=1)


def test_keys_are_independent(tmp_path):
    limiter, _ = _limiter(tmp_path)

    limiter.check("calls:u1", 1)

    assert not limiter.check("calls:u1", 1).allowed
    assert limiter.check("calls:u2", 1).allowed
    assert limiter.check("dalle:u1", 1).allowed


def test_window_resets(tmp_path):
    limiter, clock = _limiter(tmp_path)
    limiter.check("calls:u1", 1)
    assert not limiter.check("calls:u1", 1).allowed

    clock.now = START + timedelta(days=1, seconds=1)

    result = limiter.check("calls:u1", 1)
    assert result.allowed
    assert result.reset_at == clock.now + timedelta(days=1)


def test_cleanup_removes_expired_buckets(tmp_path):
    limiter, clock = _limiter(tmp_path)
    limiter.check("a", 5, window_seconds=60)
    limiter.check("b", 5)

    clock.now = START + timedelta(minutes=2)

    assert limiter.cleanup() == 1
    assert limiter.cleanup() == 0
