"""
Bounded, thread-safe pool of Redis connections.

Connections are dialed lazily, reused most-recently-released first, pinged
before reuse once they have been idle for PROBE_IDLE_THRESHOLD seconds, and
dropped once idle for longer than idle_timeout. Network I/O never happens
under the pool lock.
"""

import functools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import NamedTuple

from brokerpool.core.config import DEFAULT_REDIS_POOL_CONFIG, RedisPoolConfig, TLSConfig

from .connect import DialOptions, RedisConn, dial, split_host_port
from .errors import LivenessCheckError, PoolClosedError, PoolExhaustedError
from .health import probe_on_borrow

_log = logging.getLogger(__name__)


class _IdleEntry(NamedTuple):
    conn: RedisConn
    idle_since: float  # clock() when the connection was released


class ConnectionPool:
    """
    Pool of connections to one target.

    ``open`` counts idle plus checked-out connections; with max_active > 0 it
    never exceeds max_active. At most max_idle connections are kept idle.
    """

    def __init__(
        self,
        dial: Callable[[], RedisConn],
        *,
        max_idle: int = 0,
        max_active: int = 0,
        wait: bool = False,
        idle_timeout: float = 0.0,
        test_on_borrow: Callable[[RedisConn, float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._dial = dial
        self._max_idle = max_idle
        self._max_active = max_active
        self._wait = wait
        self._idle_timeout = idle_timeout
        self._test_on_borrow = test_on_borrow
        self._clock = clock

        self._idle: deque[_IdleEntry] = deque()
        self._open = 0
        self._closed = False
        self._lock = threading.Lock()
        self._capacity = threading.Condition(self._lock)

    @property
    def max_idle(self) -> int:
        return self._max_idle

    @property
    def max_active(self) -> int:
        return self._max_active

    @property
    def wait(self) -> bool:
        return self._wait

    @property
    def idle_timeout(self) -> float:
        return self._idle_timeout

    @property
    def idle_count(self) -> int:
        with self._lock:
            return len(self._idle)

    @property
    def active_count(self) -> int:
        """Connections currently checked out (including ones being dialed)."""
        with self._lock:
            return self._open - len(self._idle)

    def acquire(self) -> RedisConn:
        """
        Return a connection: a healthy idle one, or a freshly dialed one.

        Raises PoolExhaustedError when at max_active and not waiting,
        PoolClosedError after close(), or a DialError if dialing fails.
        """
        while True:
            entry = self._checkout()
            if entry is None:
                return self._dial_reserved()
            if self._borrow_ok(entry):
                return entry.conn
            self._discard(entry.conn)

    def release(self, conn: RedisConn) -> None:
        """Return a connection to the pool (or close it if broken, surplus or closed)."""
        to_close: list[RedisConn] = []
        with self._lock:
            if self._closed or conn.err is not None:
                to_close.append(conn)
            else:
                self._idle.appendleft(_IdleEntry(conn=conn, idle_since=self._clock()))
                while len(self._idle) > self._max_idle:
                    to_close.append(self._idle.pop().conn)
            to_close.extend(self._prune_stale())
            self._open -= len(to_close)
            self._capacity.notify(len(to_close) or 1)
        if conn.err is not None:
            _log.debug("Discarding broken connection: %s", conn.err)
        self._close_quiet(to_close)

    @contextmanager
    def connection(self) -> Iterator[RedisConn]:
        """``with pool.connection() as conn:`` acquires and always releases."""
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    def close(self) -> None:
        """Close idle connections and refuse further acquires. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            idle = [e.conn for e in self._idle]
            self._idle.clear()
            self._open -= len(idle)
            self._capacity.notify_all()
        self._close_quiet(idle)
        _log.info("Redis pool closed (%d idle connections closed)", len(idle))

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> dict[str, int]:
        """Return pool statistics for monitoring."""
        with self._lock:
            idle = len(self._idle)
            return {
                "open_connections": self._open,
                "active_connections": self._open - idle,
                "idle_connections": idle,
            }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _checkout(self) -> _IdleEntry | None:
        """
        Pop the most recently released idle entry, or reserve a slot for a dial
        (returns None). Blocks or raises when at max_active.
        """
        while True:
            with self._lock:
                if self._closed:
                    raise PoolClosedError("get on closed pool")
                stale = self._prune_stale()
                if stale:
                    self._open -= len(stale)
                    self._capacity.notify(len(stale))
                else:
                    if self._idle:
                        return self._idle.popleft()
                    if self._max_active <= 0 or self._open < self._max_active:
                        self._open += 1
                        return None
                    if not self._wait:
                        raise PoolExhaustedError(
                            f"connection pool exhausted ({self._max_active} active)"
                        )
                    self._capacity.wait()
                    continue
            self._close_quiet(stale)

    def _prune_stale(self) -> list[RedisConn]:
        """Pop idle entries idle longer than idle_timeout. Caller holds the lock."""
        stale: list[RedisConn] = []
        if self._idle_timeout <= 0:
            return stale
        now = self._clock()
        while self._idle and now - self._idle[-1].idle_since > self._idle_timeout:
            stale.append(self._idle.pop().conn)
        if stale:
            _log.debug("Pruned %d idle connections past idle_timeout", len(stale))
        return stale

    def _borrow_ok(self, entry: _IdleEntry) -> bool:
        if self._test_on_borrow is None:
            return True
        try:
            self._test_on_borrow(entry.conn, self._clock() - entry.idle_since)
        except LivenessCheckError as e:
            _log.warning("Discarding idle redis connection: %s", e)
            return False
        except Exception:
            _log.warning("Discarding idle redis connection: borrow check raised", exc_info=True)
            return False
        return True

    def _dial_reserved(self) -> RedisConn:
        try:
            return self._dial()
        except BaseException:
            with self._lock:
                self._open -= 1
                self._capacity.notify()
            raise

    def _discard(self, conn: RedisConn) -> None:
        with self._lock:
            self._open -= 1
            self._capacity.notify()
        self._close_quiet([conn])

    @staticmethod
    def _close_quiet(conns: list[RedisConn]) -> None:
        for conn in conns:
            try:
                conn.close()
            except Exception:
                _log.debug("Error closing redis connection", exc_info=True)


def new_pool(
    socket_path: str,
    host: str,
    password: str,
    db: int,
    cnf: RedisPoolConfig | None = None,
    tls_config: TLSConfig | None = None,
) -> ConnectionPool:
    """
    Build a pool of connections to one Redis target. Nothing is dialed yet.

    - socket_path / host: unix socket path or ``host:port``; a non-empty
      socket_path wins when both are given.
    - password: empty means no AUTH. db: 0 means no SELECT.
    - cnf: pool policy; None (or an all-zero config) means
      DEFAULT_REDIS_POOL_CONFIG.
    - tls_config: None means plaintext.
    """
    if cnf is None or cnf.is_empty():
        cnf = DEFAULT_REDIS_POOL_CONFIG
    if not socket_path:
        split_host_port(host)  # raises ValueError on a malformed address
    options = DialOptions.from_config(password, db, cnf, tls_config)
    _log.info(
        "Redis pool for %s (db=%d, max_idle=%d, max_active=%d, wait=%s, tls=%s)",
        f"unix:{socket_path}" if socket_path else host,
        db,
        cnf.max_idle,
        cnf.max_active,
        cnf.wait,
        tls_config is not None,
    )
    return ConnectionPool(
        functools.partial(dial, socket_path, host, options),
        max_idle=cnf.max_idle,
        max_active=cnf.max_active,
        wait=cnf.wait,
        idle_timeout=float(cnf.idle_timeout),
        test_on_borrow=probe_on_borrow,
    )
