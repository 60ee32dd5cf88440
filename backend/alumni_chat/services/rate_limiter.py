"""Per-user send rate limiting backed by Redis."""
import redis
import time
from typing import Tuple


class RateLimiter:
    """Redis-based fixed window rate limiter.

    Counters live under ``{prefix}:{key}:{window_id}`` and expire with their
    window, so several API workers share one budget per user.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "rate_limit"):
        self.redis = redis_client
        self.prefix = prefix

    def check_rate_limit(self, key: str, limit: int, window: int) -> Tuple[bool, int]:
        """
        Count one attempt and report whether it is within the limit.

        Args:
            key: Unique identifier (e.g. user ID)
            limit: Maximum attempts allowed per window
            window: Window length in seconds

        Returns:
            Tuple of (allowed: bool, current_count: int)
        """
        window_key = self._get_window_key(key, window)

        current = self.redis.get(window_key)
        if current and int(current) >= limit:
            return False, int(current)

        pipe = self.redis.pipeline()
        pipe.incr(window_key)
        pipe.expire(window_key, window)
        new_count = pipe.execute()[0]

        return new_count <= limit, new_count

    def _get_window_key(self, key: str, window: int) -> str:
        window_id = int(time.time()) // window
        return f"{self.prefix}:{key}:{window_id}"
