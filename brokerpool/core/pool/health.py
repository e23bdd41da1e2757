"""
Connection liveness checks for the Redis pool.
"""

from redis.exceptions import RedisError

from .connect import RedisConn
from .errors import LivenessCheckError

PROBE_IDLE_THRESHOLD = 10.0  # seconds; idle connections younger than this are not pinged


def health_check(conn: RedisConn) -> bool:
    """Send PING and return True if the server answered."""
    try:
        conn.execute_command("PING")
        return True
    except (RedisError, OSError):
        return False


def probe_on_borrow(conn: RedisConn, idle_sec: float) -> None:
    """
    PING connections idle for at least PROBE_IDLE_THRESHOLD seconds.

    Raises LivenessCheckError if the probe fails; the pool then discards the
    connection and moves on to another idle one or a fresh dial.
    """
    if idle_sec < PROBE_IDLE_THRESHOLD:
        return
    if not health_check(conn):
        raise LivenessCheckError(f"PING failed after {idle_sec:.1f}s idle")
