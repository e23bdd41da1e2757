"""
Errors raised by the Redis connection pool.

Dial failures share the DialError base so callers can treat "could not get a
usable connection" as one case.
"""


class PoolError(Exception):
    """Base class for all pool errors."""


class DialError(PoolError):
    """A new physical connection could not be established."""


class TargetUnreachableError(DialError):
    """Network-level failure: refused, unreachable, timed out or dropped."""


class AuthRejectedError(DialError):
    """The server rejected AUTH."""


class DatabaseSelectionError(DialError):
    """The server rejected SELECT."""


class EncryptionNegotiationError(DialError):
    """The TLS handshake failed."""


class PoolExhaustedError(PoolError):
    """max_active connections are open and the pool does not wait."""


class PoolClosedError(PoolError):
    """acquire() was called on a closed pool."""


class LivenessCheckError(PoolError):
    """An idle connection failed its PING before reuse. Never leaves the pool."""
