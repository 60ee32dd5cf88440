"""Tests for the Redis-backed send rate limiter."""
import pytest
from unittest.mock import MagicMock, patch

from alumni_chat.services.rate_limiter import RateLimiter


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis_mock = MagicMock()
    redis_mock.get.return_value = None
    pipe_mock = MagicMock()
    pipe_mock.execute.return_value = [1, True]
    redis_mock.pipeline.return_value = pipe_mock
    return redis_mock


def test_first_attempt_is_allowed(mock_redis):
    limiter = RateLimiter(mock_redis)

    allowed, count = limiter.check_rate_limit("user_123", limit=5, window=60)

    assert allowed is True
    assert count == 1


def test_attempt_increments_and_expires_window(mock_redis):
    limiter = RateLimiter(mock_redis)

    limiter.check_rate_limit("user_123", limit=5, window=60)

    pipe = mock_redis.pipeline.return_value
    pipe.incr.assert_called_once()
    pipe.expire.assert_called_once()
    assert pipe.expire.call_args[0][1] == 60
    pipe.execute.assert_called_once()


def test_attempt_rejected_when_at_limit(mock_redis):
    """Test that a full window rejects without incrementing."""
    mock_redis.get.return_value = b"5"
    limiter = RateLimiter(mock_redis)

    allowed, count = limiter.check_rate_limit("user_123", limit=5, window=60)

    assert allowed is False
    assert count == 5
    mock_redis.pipeline.assert_not_called()


def test_window_key_uses_prefix_and_window_id(mock_redis):
    limiter = RateLimiter(mock_redis, prefix="rate_limit:messages")

    with patch("alumni_chat.services.rate_limiter.time.time", return_value=120.0):
        limiter.check_rate_limit("user_123", limit=5, window=60)

    mock_redis.get.assert_called_once_with("rate_limit:messages:user_123:2")

