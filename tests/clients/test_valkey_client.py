"""Tests for ValkeyClient - Redis-compatible cache and job schedule store.

redis-py is replaced by a MagicMock; these tests pin down which Redis
commands each wrapper method issues.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from clients.valkey_client import ValkeyClient


@pytest.fixture
def redis_double():
    return MagicMock()


@pytest.fixture
def valkey(redis_double):
    return ValkeyClient(client=redis_double)


class TestValkeyClientInit:
    """Connection initialization."""

    def test_pings_on_connect(self, redis_double):
        """Connectivity is verified immediately (fail-fast)."""
        ValkeyClient(client=redis_double)
        redis_double.ping.assert_called_once()

    def test_builds_client_from_url(self):
        with patch("clients.valkey_client.redis.from_url") as from_url:
            ValkeyClient("redis://localhost:6379/0")
        from_url.assert_called_once_with("redis://localhost:6379/0", decode_responses=True)

    def test_requires_url_or_client(self):
        with pytest.raises(ValueError, match="url or client"):
            ValkeyClient()

    def test_connection_failure_propagates(self, redis_double):
        redis_double.ping.side_effect = ConnectionError("refused")
        with pytest.raises(ConnectionError):
            ValkeyClient(client=redis_double)


class TestBasicOperations:
    """Get/set/delete operations."""

    def test_set_with_expiration_uses_setex(self, valkey, redis_double):
        valkey.set("k", "v", expire_seconds=30)
        redis_double.setex.assert_called_once_with("k", 30, "v")

    def test_set_without_expiration(self, valkey, redis_double):
        valkey.set("k", "v")
        redis_double.set.assert_called_once_with("k", "v")

    def test_delete_reports_existence(self, valkey, redis_double):
        redis_double.delete.return_value = 1
        assert valkey.delete("k") is True
        redis_double.delete.return_value = 0
        assert valkey.delete("k") is False

    def test_delete_matching_uses_scan(self, valkey, redis_double):
        redis_double.scan_iter.return_value = iter(["p:1", "p:2", "p:3"])
        redis_double.delete.return_value = 1

        assert valkey.delete_matching("p:*") == 3
        redis_double.scan_iter.assert_called_once_with(match="p:*", count=500)
        redis_double.keys.assert_not_called()


class TestJsonHelpers:
    """JSON serialization helpers."""

    def test_set_json_serializes(self, valkey, redis_double):
        data = {"id": "C1", "balance": "150.50"}
        valkey.set_json("k", data, expire_seconds=300)
        redis_double.setex.assert_called_once_with("k", 300, json.dumps(data))

    def test_get_json_missing_returns_none(self, valkey, redis_double):
        redis_double.get.return_value = None
        assert valkey.get_json("k") is None

    def test_get_json_invalid_raises(self, valkey, redis_double):
        redis_double.get.return_value = "not valid json {"
        with pytest.raises(ValueError, match="Invalid JSON"):
            valkey.get_json("k")


class TestSortedSets:
    """Job schedule primitives."""

    def test_zadd(self, valkey, redis_double):
        valkey.zadd("jobs:schedule", "job-1", 1736510400.0)
        redis_double.zadd.assert_called_once_with("jobs:schedule", {"job-1": 1736510400.0})

    def test_zrange_due(self, valkey, redis_double):
        redis_double.zrangebyscore.return_value = ["job-1"]

        assert valkey.zrange_due("jobs:schedule", 100.0, 5) == ["job-1"]
        redis_double.zrangebyscore.assert_called_once_with(
            "jobs:schedule", "-inf", 100.0, start=0, num=5
        )

    def test_zrem_claims(self, valkey, redis_double):
        redis_double.zrem.return_value = 1
        assert valkey.zrem("jobs:schedule", "job-1") is True
        redis_double.zrem.return_value = 0
        assert valkey.zrem("jobs:schedule", "job-1") is False
