"""
Redis pool configuration for the broker and result backend.

RedisPoolConfig and TLSConfig are immutable values handed to new_pool().
Settings loads the process-wide values from the environment (BROKER_ prefix).
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisPoolConfig(BaseModel):
    """Pool policy. Durations are whole seconds; 0 disables a timeout or limit."""

    model_config = ConfigDict(frozen=True)

    max_idle: int = Field(default=0, ge=0)
    max_active: int = Field(default=0, ge=0)  # 0 = unbounded
    wait: bool = False
    idle_timeout: int = Field(default=0, ge=0)  # 0 = idle connections never expire
    read_timeout: int = Field(default=0, ge=0)
    write_timeout: int = Field(default=0, ge=0)
    connect_timeout: int = Field(default=0, ge=0)
    # Read by broker consumers, not by the pool.
    normal_tasks_poll_period: int = Field(default=0, ge=0)
    delayed_tasks_poll_period: int = Field(default=0, ge=0)

    def is_empty(self) -> bool:
        """True when every field is zero/false, i.e. the caller configured nothing."""
        return self == RedisPoolConfig()


DEFAULT_REDIS_POOL_CONFIG = RedisPoolConfig(
    max_idle=3,
    idle_timeout=240,
    read_timeout=15,
    write_timeout=15,
    connect_timeout=15,
    delayed_tasks_poll_period=20,
    normal_tasks_poll_period=15,  # bounded below by read_timeout on blocking pops
)


class TLSConfig(BaseModel):
    """Client-side TLS parameters, passed through to redis-py's SSLConnection."""

    model_config = ConfigDict(frozen=True)

    certfile: str | None = None
    keyfile: str | None = None
    password: str | None = None
    ca_certs: str | None = None
    ca_path: str | None = None
    cert_reqs: Literal["required", "optional", "none"] = "required"
    check_hostname: bool = False
    ciphers: str | None = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BROKER_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    REDIS_SOCKET_PATH: str = ""
    REDIS_HOST: str = "localhost:6379"
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = Field(default=0, ge=0)

    REDIS_MAX_IDLE: int = DEFAULT_REDIS_POOL_CONFIG.max_idle
    REDIS_MAX_ACTIVE: int = DEFAULT_REDIS_POOL_CONFIG.max_active
    REDIS_WAIT: bool = DEFAULT_REDIS_POOL_CONFIG.wait
    REDIS_IDLE_TIMEOUT: int = DEFAULT_REDIS_POOL_CONFIG.idle_timeout
    REDIS_READ_TIMEOUT: int = DEFAULT_REDIS_POOL_CONFIG.read_timeout
    REDIS_WRITE_TIMEOUT: int = DEFAULT_REDIS_POOL_CONFIG.write_timeout
    REDIS_CONNECT_TIMEOUT: int = DEFAULT_REDIS_POOL_CONFIG.connect_timeout
    REDIS_NORMAL_TASKS_POLL_PERIOD: int = (
        DEFAULT_REDIS_POOL_CONFIG.normal_tasks_poll_period
    )
    REDIS_DELAYED_TASKS_POLL_PERIOD: int = (
        DEFAULT_REDIS_POOL_CONFIG.delayed_tasks_poll_period
    )

    REDIS_TLS_ENABLED: bool = False
    REDIS_TLS_CA_CERTS: str | None = None
    REDIS_TLS_CERTFILE: str | None = None
    REDIS_TLS_KEYFILE: str | None = None
    REDIS_TLS_CERT_REQS: Literal["required", "optional", "none"] = "required"
    REDIS_TLS_CHECK_HOSTNAME: bool = False

    @property
    def redis_pool_config(self) -> RedisPoolConfig:
        return RedisPoolConfig(
            max_idle=self.REDIS_MAX_IDLE,
            max_active=self.REDIS_MAX_ACTIVE,
            wait=self.REDIS_WAIT,
            idle_timeout=self.REDIS_IDLE_TIMEOUT,
            read_timeout=self.REDIS_READ_TIMEOUT,
            write_timeout=self.REDIS_WRITE_TIMEOUT,
            connect_timeout=self.REDIS_CONNECT_TIMEOUT,
            normal_tasks_poll_period=self.REDIS_NORMAL_TASKS_POLL_PERIOD,
            delayed_tasks_poll_period=self.REDIS_DELAYED_TASKS_POLL_PERIOD,
        )

    @property
    def redis_tls_config(self) -> TLSConfig | None:
        if not self.REDIS_TLS_ENABLED:
            return None
        return TLSConfig(
            ca_certs=self.REDIS_TLS_CA_CERTS,
            certfile=self.REDIS_TLS_CERTFILE,
            keyfile=self.REDIS_TLS_KEYFILE,
            cert_reqs=self.REDIS_TLS_CERT_REQS,
            check_hostname=self.REDIS_TLS_CHECK_HOSTNAME,
        )


settings = Settings()  # type: ignore
