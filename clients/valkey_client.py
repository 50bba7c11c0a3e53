"""
Valkey (Redis-compatible) client for worker cadence state.

The message processor persists the time of its last failed-retry pass here so
the long retry cadence survives restarts. Simple wrapper around redis-py.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        client.set("messages:last_failed_retry_at", "2025-01-01T00:00:00+00:00")
        value = client.get("messages:last_failed_retry_at")  # None if missing
    """

    def __init__(self, url: str):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def get(self, key: str) -> str | None:
        """
        Get value by key.

        Returns None if key doesn't exist (not an error).
        Raises on connection failure.
        """
        return self._client.get(key)

    def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        """
        Set key to value, optionally with expiration.

        Args:
            key: Key to set
            value: Value to store
            expire_seconds: TTL in seconds (None for no expiration)
        """
        if expire_seconds is not None:
            self._client.setex(key, expire_seconds, value)
        else:
            self._client.set(key, value)

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
