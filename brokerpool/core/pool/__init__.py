"""
Redis connection pool for the task-queue broker and result backend.

new_pool() builds a lazily-dialed, bounded pool; dial() opens one connection
(unix socket or TCP, optional TLS, AUTH, SELECT).
"""

from .connect import DialOptions, RedisConn, dial
from .errors import (
    AuthRejectedError,
    DatabaseSelectionError,
    DialError,
    EncryptionNegotiationError,
    LivenessCheckError,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
    TargetUnreachableError,
)
from .health import PROBE_IDLE_THRESHOLD, health_check, probe_on_borrow
from .manager import ConnectionPool, new_pool

__all__ = [
    "dial",
    "DialOptions",
    "RedisConn",
    "health_check",
    "probe_on_borrow",
    "PROBE_IDLE_THRESHOLD",
    "ConnectionPool",
    "new_pool",
    "PoolError",
    "DialError",
    "TargetUnreachableError",
    "AuthRejectedError",
    "DatabaseSelectionError",
    "EncryptionNegotiationError",
    "PoolExhaustedError",
    "PoolClosedError",
    "LivenessCheckError",
]
