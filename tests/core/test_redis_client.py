"""Unit tests for core.redis_client: the process-wide pool built from settings."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from brokerpool.core import redis_client
from brokerpool.core.config import RedisPoolConfig
from brokerpool.core.pool.errors import TargetUnreachableError
from tests.utils.fake_redis import FakeConn


@pytest.fixture(autouse=True)
def _reset_shared_pool() -> None:
    redis_client._pool = None
    yield
    redis_client._pool = None


def test_get_pool_built_from_settings() -> None:
    cnf = RedisPoolConfig(max_idle=7)
    with patch.object(redis_client, "new_pool") as mock_new_pool, patch(
        "brokerpool.core.redis_client.settings"
    ) as m:
        m.REDIS_SOCKET_PATH = ""
        m.REDIS_HOST = "redis.internal:6379"
        m.REDIS_PASSWORD = "pw"
        m.REDIS_DB = 3
        m.redis_pool_config = cnf
        m.redis_tls_config = None
        pool = redis_client.get_pool()
    mock_new_pool.assert_called_once_with("", "redis.internal:6379", "pw", 3, cnf, None)
    assert pool is mock_new_pool.return_value


def test_get_pool_is_singleton_across_threads() -> None:
    with patch.object(redis_client, "new_pool", side_effect=lambda *a: MagicMock()) as mock_new_pool:
        pools: list = []
        threads = [threading.Thread(target=lambda: pools.append(redis_client.get_pool())) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)
    assert mock_new_pool.call_count == 1
    assert len({id(p) for p in pools}) == 1


def test_close_pool_resets() -> None:
    with patch.object(redis_client, "new_pool", side_effect=lambda *a: MagicMock()):
        first = redis_client.get_pool()
        redis_client.close_pool()
        first.close.assert_called_once()
        second = redis_client.get_pool()
    assert second is not first


def test_close_pool_without_pool_is_noop() -> None:
    redis_client.close_pool()
    assert redis_client._pool is None


def test_ping_ok() -> None:
    conn = FakeConn("c0")
    pool = MagicMock()
    pool.connection.return_value.__enter__.return_value = conn
    with patch.object(redis_client, "get_pool", return_value=pool):
        assert redis_client.ping() is True
    assert conn.commands == [("PING",)]


def test_ping_false_when_unreachable() -> None:
    pool = MagicMock()
    pool.connection.side_effect = TargetUnreachableError("refused")
    with patch.object(redis_client, "get_pool", return_value=pool):
        assert redis_client.ping() is False
