"""Rate limiting utilities."""

import math
from datetime import datetime, timezone

import redis

from backend.docchat.db.context import RequestContext
from backend.docchat.db.repositories import RateLimiter, RetryAfter

# Bucket for the submit-question endpoint
MESSAGES_BUCKET = "messages"


def make_rate_limit_key(ctx: RequestContext, bucket: str) -> str:
    """Create rate limit key from context and bucket.

    Args:
        ctx: Request context
        bucket: Bucket name (e.g., "messages")

    Returns:
        Rate limit key
    """
    return f"{ctx.owner_id}:{bucket}"


def check_rate_limit(
    limiter: RateLimiter, ctx: RequestContext, bucket: str, now: datetime | None = None
) -> RetryAfter | None:
    """Consume one request from the caller's bucket.

    Returns:
        RetryAfter if over quota, None if allowed
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return limiter.check_quota(make_rate_limit_key(ctx, bucket), now)


class RedisRateLimiter:
    """Fixed-window limiter shared by every API process through Redis.

    Counters live under ``<prefix>:<key>:<window_start>`` and expire with
    their window, so no cleanup is needed.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        max_requests: int,
        window_seconds: int = 60,
        prefix: str = "docchat:ratelimit",
    ) -> None:
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._prefix = prefix

    def window_start(self, now: datetime) -> int:
        """Epoch second at which the window containing ``now`` began."""
        return int(now.timestamp()) // self._window_seconds * self._window_seconds

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Count this request and report how long to wait if over quota."""
        start = self.window_start(now)
        redis_key = f"{self._prefix}:{key}:{start}"

        pipe = self._redis.pipeline(transaction=True)
        pipe.incr(redis_key)
        pipe.expire(redis_key, self._window_seconds)
        count, _ = pipe.execute()

        if count <= self._max_requests:
            return None

        remaining = start + self._window_seconds - now.timestamp()
        return RetryAfter(seconds=max(1, math.ceil(remaining)))
