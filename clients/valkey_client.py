"""
Valkey (Redis-compatible) client for the read-through cache and job schedule.

Simple wrapper around redis-py. Connection URL from Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import json
import logging
from typing import Any

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        client.set_json("customer:CUST-1", {...}, expire_seconds=300)
        value = client.get_json("customer:CUST-1")  # Returns None if missing
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)
            client: Pre-built redis client (takes precedence over url)

        Raises:
            ValueError: If neither url nor client is given
            redis.ConnectionError: If connection fails
        """
        if client is None and not url:
            raise ValueError("url or client is required")
        self._client = client if client is not None else redis.from_url(url, decode_responses=True)
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

    def delete(self, key: str) -> bool:
        """
        Delete key.

        Returns True if key existed and was deleted, False if key didn't exist.
        """
        return self._client.delete(key) > 0

    def delete_matching(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        Uses SCAN, so it never blocks the server the way KEYS would.
        Returns the number of keys deleted.
        """
        deleted = 0
        for key in self._client.scan_iter(match=pattern, count=500):
            deleted += self._client.delete(key)
        return deleted

    def set_json(self, key: str, value: Any, expire_seconds: int | None = None) -> None:
        """
        Set key to JSON-serialized value.

        Args:
            key: Key to set
            value: JSON-compatible value to serialize
            expire_seconds: TTL in seconds (None for no expiration)
        """
        json_str = json.dumps(value)
        self.set(key, json_str, expire_seconds)

    def get_json(self, key: str) -> Any:
        """
        Get and deserialize JSON value.

        Returns None if key doesn't exist.
        Raises ValueError if value is not valid JSON.
        """
        value = self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in key '{key}': {e}")

    # Sorted sets (job schedule)

    def zadd(self, key: str, member: str, score: float) -> None:
        """Add or re-score a member."""
        self._client.zadd(key, {member: score})

    def zrange_due(self, key: str, max_score: float, limit: int) -> list[str]:
        """Members with score <= max_score, lowest score first."""
        return self._client.zrangebyscore(key, "-inf", max_score, start=0, num=limit)

    def zrem(self, key: str, member: str) -> bool:
        """
        Remove a member.

        Returns True only for the caller that actually removed it, so
        competing workers can use this to claim a member.
        """
        return self._client.zrem(key, member) > 0

    def zcard(self, key: str) -> int:
        """Number of members."""
        return self._client.zcard(key)
