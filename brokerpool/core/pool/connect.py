"""
Dialing one Redis connection for the pool.

Uses redis-py's low-level connection classes (no client object, no redis-py
pool): the handshake (AUTH, then SELECT) is issued here so every failure maps
onto a typed DialError and the ordering is explicit.
"""

import logging
import ssl
from dataclasses import dataclass
from typing import Any

from redis.connection import Connection, SSLConnection, UnixDomainSocketConnection
from redis.exceptions import (
    AuthenticationError,
    ConnectionError,
    RedisError,
    ResponseError,
    TimeoutError,
)

from brokerpool.core.config import RedisPoolConfig, TLSConfig

from .errors import (
    AuthRejectedError,
    DatabaseSelectionError,
    EncryptionNegotiationError,
    TargetUnreachableError,
)

_log = logging.getLogger(__name__)

DEFAULT_PORT = 6379


def _seconds(value: int) -> float | None:
    """0 means no timeout; socket.settimeout(0) would mean non-blocking."""
    return float(value) if value > 0 else None


@dataclass(frozen=True)
class DialOptions:
    """Everything needed to open one connection, apart from the target."""

    password: str = ""
    db: int = 0
    connect_timeout: float | None = None
    read_timeout: float | None = None
    write_timeout: float | None = None
    tls: TLSConfig | None = None

    @classmethod
    def from_config(
        cls,
        password: str,
        db: int,
        cnf: RedisPoolConfig,
        tls: TLSConfig | None = None,
    ) -> "DialOptions":
        if db < 0:
            raise ValueError(f"db must be non-negative, got {db}")
        return cls(
            password=password or "",
            db=db,
            connect_timeout=_seconds(cnf.connect_timeout),
            read_timeout=_seconds(cnf.read_timeout),
            write_timeout=_seconds(cnf.write_timeout),
            tls=tls,
        )

    @property
    def socket_timeout(self) -> float | None:
        """A Python socket has one I/O timeout: the larger of read and write."""
        timeouts = [t for t in (self.read_timeout, self.write_timeout) if t is not None]
        return max(timeouts) if timeouts else None


class RedisConn:
    """
    One physical connection handed out by the pool.

    A network error marks the connection broken (``err``); the pool closes
    broken connections on release instead of keeping them idle.
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection
        self.err: Exception | None = None

    def execute_command(self, *args: Any) -> Any:
        """Send one command and return its reply. Server errors raise ResponseError."""
        if self.err is not None:
            # redis-py would reconnect transparently, skipping AUTH/SELECT.
            raise ConnectionError(f"connection is broken: {self.err}")
        try:
            self._connection.send_command(*args)
            return self._connection.read_response()
        except ResponseError:
            raise
        except (RedisError, OSError) as e:
            self.err = e
            self._close_quiet()
            raise

    def close(self) -> None:
        self._close_quiet()

    def _close_quiet(self) -> None:
        try:
            self._connection.disconnect()
        except Exception:
            _log.debug("Error while disconnecting", exc_info=True)


def split_host_port(host: str) -> tuple[str, int]:
    """Split ``host:port`` (``[v6addr]:port`` for IPv6). Port defaults to 6379."""
    if host.startswith("["):
        addr, _, rest = host[1:].partition("]")
        port = rest[1:] if rest.startswith(":") else ""
    elif host.count(":") == 1:
        addr, _, port = host.partition(":")
    else:
        addr, port = host, ""
    if not addr:
        raise ValueError(f"invalid redis host address: {host!r}")
    return addr, int(port) if port else DEFAULT_PORT


def _new_connection(socket_path: str, host: str, options: DialOptions) -> Any:
    common: dict[str, Any] = {
        "socket_timeout": options.socket_timeout,
        "socket_connect_timeout": options.connect_timeout,
        # no CLIENT SETINFO before AUTH
        "lib_name": None,
        "lib_version": None,
    }
    # Socket path wins when both targets are given.
    if socket_path:
        if options.tls is not None:
            # redis-py has no TLS unix connection; never fall back to plaintext.
            raise EncryptionNegotiationError(
                f"TLS is not supported over unix socket {socket_path}"
            )
        return UnixDomainSocketConnection(path=socket_path, **common)

    addr, port = split_host_port(host)
    if options.tls is not None:
        tls = options.tls
        return SSLConnection(
            host=addr,
            port=port,
            ssl_certfile=tls.certfile,
            ssl_keyfile=tls.keyfile,
            ssl_password=tls.password,
            ssl_ca_certs=tls.ca_certs,
            ssl_ca_path=tls.ca_path,
            ssl_cert_reqs=tls.cert_reqs,
            ssl_check_hostname=tls.check_hostname,
            ssl_ciphers=tls.ciphers,
            **common,
        )
    return Connection(host=addr, port=port, **common)


def _caused_by_tls(exc: BaseException) -> bool:
    seen: BaseException | None = exc
    while seen is not None:
        if isinstance(seen, ssl.SSLError):
            return True
        seen = seen.__cause__ or seen.__context__
    return False


def _open(connection: Any, target: str, options: DialOptions) -> None:
    try:
        connection.connect()
    except (RedisError, OSError) as e:
        if options.tls is not None and _caused_by_tls(e):
            raise EncryptionNegotiationError(
                f"TLS handshake with {target} failed: {e}"
            ) from e
        raise TargetUnreachableError(f"cannot connect to {target}: {e}") from e


def _authenticate(conn: RedisConn, target: str, password: str) -> None:
    try:
        conn.execute_command("AUTH", password)
    except (AuthenticationError, ResponseError) as e:
        raise AuthRejectedError(f"AUTH rejected by {target}: {e}") from e
    except (ConnectionError, TimeoutError, OSError) as e:
        raise TargetUnreachableError(f"connection to {target} lost during AUTH: {e}") from e


def _select(conn: RedisConn, target: str, db: int) -> None:
    try:
        conn.execute_command("SELECT", db)
    except ResponseError as e:
        raise DatabaseSelectionError(f"SELECT {db} rejected by {target}: {e}") from e
    except (ConnectionError, TimeoutError, OSError) as e:
        raise TargetUnreachableError(f"connection to {target} lost during SELECT: {e}") from e


def dial(socket_path: str, host: str, options: DialOptions) -> RedisConn:
    """
    Open one connection: transport (unix socket or TCP, optionally TLS),
    then AUTH if a password is set, then SELECT if db != 0.

    On any failure the partial connection is closed and a DialError raised.
    """
    target = f"unix:{socket_path}" if socket_path else host
    connection = _new_connection(socket_path, host, options)
    conn = RedisConn(connection)
    try:
        _open(connection, target, options)
        if options.password:
            _authenticate(conn, target, options.password)
        if options.db != 0:
            _select(conn, target, options.db)
    except Exception:
        conn.close()
        raise
    _log.debug("Dialed redis %s (db=%d, tls=%s)", target, options.db, options.tls is not None)
    return conn
