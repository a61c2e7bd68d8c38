"""
Per-user rate limiting for the coaching endpoints.

Fixed-window counter in Redis: the first request in a window creates the key
with a TTL equal to the window, later requests increment it until the limit.
"""
import math
import time
import logging
from dataclasses import dataclass
from typing import Optional

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    """Outcome of one limiter check. ``reset`` is a unix timestamp in seconds."""
    success: bool
    limit: int
    remaining: int
    reset: int

    def retry_after(self, now: Optional[float] = None) -> int:
        """Whole seconds until the window resets (never negative)."""
        now = time.time() if now is None else now
        return max(0, math.ceil(self.reset - now))

    def headers(self) -> dict:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


class RedisRateLimiter:
    """
    Rate limiter keyed by an identifier (the authenticated user id).

    Usage:
        limiter = RedisRateLimiter(redis_client, limit=10, window=3600)
        result = limiter.limit(user_id)
        if not result.success:
            ...
    """

    def __init__(self, client, limit: int = 10, window: int = 3600, prefix: str = "coach_message"):
        self.client = client
        self.limit_count = limit
        self.window = window  # Time window in seconds
        self.prefix = prefix

    def _key(self, identifier: str) -> str:
        return f"rate_limit:{self.prefix}:{identifier}"

    def limit(self, identifier: str) -> RateLimitResult:
        key = self._key(identifier)
        now = int(time.time())

        try:
            current = self.client.get(key)

            if current is None:
                # First request - initialize window
                self.client.setex(key, self.window, 1)
                return RateLimitResult(True, self.limit_count, self.limit_count - 1, now + self.window)

            current_count = int(current)

            if current_count >= self.limit_count:
                ttl = self.client.ttl(key)
                reset_time = now + (ttl if ttl and ttl > 0 else self.window)
                return RateLimitResult(False, self.limit_count, 0, reset_time)

            new_count = self.client.incr(key)

            # Key expired between GET and INCR: INCR recreated it without a TTL
            if new_count == 1:
                self.client.expire(key, self.window)

            ttl = self.client.ttl(key)
            reset_time = now + (ttl if ttl and ttl > 0 else self.window)
            return RateLimitResult(True, self.limit_count, max(0, self.limit_count - new_count), reset_time)

        except (RedisError, ValueError) as e:
            # On error, allow request (fail open)
            logger.error(f"Rate limit check error: {e}")
            return RateLimitResult(True, self.limit_count, self.limit_count, now + self.window)
