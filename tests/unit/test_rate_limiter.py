"""Tests for rate limiting."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from backend.docchat.db.context import RequestContext
from backend.docchat.db.inmemory import InMemoryRateLimiter
from backend.docchat.ratelimit import (
    MESSAGES_BUCKET,
    RedisRateLimiter,
    check_rate_limit,
    make_rate_limit_key,
)

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_rate_limit_key_is_per_owner_and_bucket() -> None:
    ctx = RequestContext(owner_id="user_1", plan_id="pro")

    assert make_rate_limit_key(ctx, "messages") == "user_1:messages"


def test_in_memory_limiter_allows_quota_then_blocks() -> None:
    limiter = InMemoryRateLimiter(max_requests=2, window_seconds=60)

    assert limiter.check_quota("k", NOW) is None
    assert limiter.check_quota("k", NOW + timedelta(seconds=1)) is None
    retry = limiter.check_quota("k", NOW + timedelta(seconds=10))

    assert retry is not None
    assert retry.seconds == 50


def test_in_memory_limiter_resets_after_window() -> None:
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)

    assert limiter.check_quota("k", NOW) is None
    assert limiter.check_quota("k", NOW + timedelta(seconds=30)) is not None
    assert limiter.check_quota("k", NOW + timedelta(seconds=60)) is None


def test_in_memory_limiter_keys_are_independent() -> None:
    limiter = InMemoryRateLimiter(max_requests=1)

    assert limiter.check_quota("a", NOW) is None
    assert limiter.check_quota("b", NOW) is None


def test_check_rate_limit_uses_owner_bucket() -> None:
    limiter = MagicMock()
    limiter.check_quota.return_value = None
    ctx = RequestContext(owner_id="user_9")

    assert check_rate_limit(limiter, ctx, MESSAGES_BUCKET, now=NOW) is None
    limiter.check_quota.assert_called_once_with("user_9:messages", NOW)


def _redis_returning(count: int) -> tuple[MagicMock, MagicMock]:
    redis_client = MagicMock()
    pipe = redis_client.pipeline.return_value
    pipe.execute.return_value = [count, True]
    return redis_client, pipe


def test_redis_limiter_counts_in_window_aligned_key() -> None:
    redis_client, pipe = _redis_returning(1)
    limiter = RedisRateLimiter(redis_client, max_requests=3)

    assert limiter.check_quota("k", NOW + timedelta(seconds=5)) is None

    key = f"docchat:ratelimit:k:{int(NOW.timestamp())}"
    redis_client.pipeline.assert_called_once_with(transaction=True)
    pipe.incr.assert_called_once_with(key)
    pipe.expire.assert_called_once_with(key, 60)


def test_redis_limiter_over_quota_waits_for_window_end() -> None:
    redis_client, _ = _redis_returning(4)
    limiter = RedisRateLimiter(redis_client, max_requests=3)

    retry = limiter.check_quota("k", NOW + timedelta(seconds=43))

    assert retry is not None
    assert retry.seconds == 17


def test_redis_limiter_retry_after_is_at_least_one_second() -> None:
    redis_client, _ = _redis_returning(10)
    limiter = RedisRateLimiter(redis_client, max_requests=3)

    retry = limiter.check_quota("k", NOW + timedelta(seconds=59, milliseconds=900))

    assert retry is not None
    assert retry.seconds == 1
