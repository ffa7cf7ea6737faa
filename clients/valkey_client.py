"""
Valkey (Redis-compatible) client for the note store.

Simple wrapper around redis-py. Connection URL from config or Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

import redis
from redis.commands.core import Script

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        script = client.register_script(LUA_SOURCE)
        result = script(keys=["note:abc"], args=[1])
        client.pttl("note:abc")  # Remaining TTL in milliseconds
    """

    def __init__(self, url: str, timeout_seconds: float | None = None):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)
            timeout_seconds: Socket connect/read timeout (None = redis-py default)

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """
        Health check.

        Returns True if Valkey responds.
        Raises redis.ConnectionError if unreachable.
        """
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        """
        Get value by key.

        Returns None if key doesn't exist (not an error).
        Raises on connection failure.
        """
        return self._client.get(key)

    def delete(self, key: str) -> bool:
        """
        Delete key.

        Returns True if key existed and was deleted, False if key didn't exist.
        """
        return self._client.delete(key) > 0

    def pttl(self, key: str) -> int:
        """
        Get remaining TTL in milliseconds.

        Returns:
            -2 if key doesn't exist
            -1 if key has no expiration
            Positive int: remaining milliseconds
        """
        return self._client.pttl(key)

    def register_script(self, source: str) -> Script:
        """
        Register a Lua script for atomic server-side execution.

        The returned callable runs the script with EVALSHA, loading it on
        first use or after a server restart flushed the script cache.
        """
        return self._client.register_script(source)

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
