"""Tests for ValkeyClient - redis-py is patched, no server needed."""

from unittest.mock import patch

import pytest
import redis

from clients.valkey_client import ValkeyClient


@pytest.fixture
def redis_client():
    with patch("clients.valkey_client.redis.from_url") as from_url:
        yield from_url.return_value


@pytest.fixture
def valkey(redis_client):
    return ValkeyClient("redis://localhost:6379/0")


class TestValkeyClientInit:
    """Connection initialization."""

    def test_pings_on_connect(self, redis_client):
        ValkeyClient("redis://localhost:6379/0")
        redis_client.ping.assert_called_once()

    def test_connection_failure_raises(self, redis_client):
        """Fail-fast when the server is unreachable."""
        redis_client.ping.side_effect = redis.ConnectionError("refused")
        with pytest.raises(redis.ConnectionError):
            ValkeyClient("redis://localhost:6379/0")


class TestBasicOperations:
    """Get/set operations."""

    def test_get_missing_returns_none(self, valkey, redis_client):
        """Get on non-existent key returns None (not error)."""
        redis_client.get.return_value = None
        assert valkey.get("billing:missing") is None

    def test_set_without_expiry(self, valkey, redis_client):
        valkey.set("billing:key", "value")
        redis_client.set.assert_called_once_with("billing:key", "value")

    def test_set_with_expiry(self, valkey, redis_client):
        valkey.set("billing:key", "value", expire_seconds=60)
        redis_client.setex.assert_called_once_with("billing:key", 60, "value")

    def test_close_closes_connection(self, valkey, redis_client):
        valkey.close()
        redis_client.close.assert_called_once()
