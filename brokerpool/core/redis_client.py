"""
Process-wide Redis pool for the broker and result backend.

Built lazily from ``settings`` the first time get_pool() is called, so
importing this module never touches the network.
"""

import logging
import threading

from brokerpool.core.config import settings
from brokerpool.core.pool import ConnectionPool, PoolError, health_check, new_pool

_LOG = logging.getLogger(__name__)

_lock = threading.Lock()
_pool: ConnectionPool | None = None


def get_pool() -> ConnectionPool:
    """Return the shared pool (thread-safe double-checked locking)."""
    global _pool
    if _pool is not None:
        return _pool
    with _lock:
        if _pool is None:
            _pool = new_pool(
                settings.REDIS_SOCKET_PATH,
                settings.REDIS_HOST,
                settings.REDIS_PASSWORD,
                settings.REDIS_DB,
                settings.redis_pool_config,
                settings.redis_tls_config,
            )
        return _pool


def ping() -> bool:
    """Quick health check: True if a pooled connection answers PING."""
    try:
        with get_pool().connection() as conn:
            return health_check(conn)
    except PoolError as e:
        _LOG.debug("Redis unavailable: %s", e)
        return False


def close_pool() -> None:
    """Close the shared pool; the next get_pool() builds a new one."""
    global _pool
    with _lock:
        pool, _pool = _pool, None
    if pool is not None:
        pool.close()
