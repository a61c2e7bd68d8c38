"""
Redis connection helper.

Provides graceful degradation if Redis is unavailable: callers receive None
and skip the feature (rate limiting) instead of failing requests.
"""
import logging
from typing import Optional
import redis
from redis.exceptions import ConnectionError, TimeoutError, RedisError

logger = logging.getLogger(__name__)


def create_redis_client(url: Optional[str]) -> Optional[redis.Redis]:
    """Connect to Redis at ``url``. Returns None if unset or unreachable."""
    if not url:
        logger.warning("REDIS_URL not configured, rate limiting disabled")
        return None

    try:
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
            health_check_interval=30
        )
        # Test connection
        client.ping()
        logger.info("Redis connection established")
        return client
    except (ConnectionError, TimeoutError, RedisError) as e:
        logger.warning(f"Redis unavailable: {e}. Rate limiting disabled.")
        return None
