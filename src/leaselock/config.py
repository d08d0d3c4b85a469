"""Settings for the lease lock and its coordinator.

Defaults come from LEASELOCK_* environment variables; explicit constructor
arguments win. The lock itself never reads the environment, only this
module does.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from leaselock.env_parse import parse_bool, parse_int, parse_str
from leaselock.ha.election import validate_timing
from leaselock.store import hostname_or_rand


def _env_int(name: str, default: int) -> int:
    value = parse_int(name, default, min_value=1)
    return default if value is None else value


@dataclass
class LockSettings:
    """Store connection, lock key and election timing.

    Attributes:
        redis_url: Redis URL or host:port (env: LEASELOCK_REDIS_URL)
        redis_username: ACL username override (env: LEASELOCK_REDIS_USERNAME)
        redis_password: Password override (env: LEASELOCK_REDIS_PASSWORD)
        redis_db: DB index override, None keeps the URL's (env: LEASELOCK_REDIS_DB)
        redis_tls: Force TLS (env: LEASELOCK_REDIS_TLS)
        lock_key: Key holding the lease (env: LEASELOCK_KEY)
        identity: Holder identity (env: LEASELOCK_IDENTITY, default: hostname)
        lease_duration_s: Lease duration (env: LEASELOCK_LEASE_S, default: 15)
        renew_deadline_s: Renew deadline (env: LEASELOCK_RENEW_S, default: 10)
        retry_period_s: Retry period (env: LEASELOCK_RETRY_S, default: 2)
        socket_timeout_s: Redis socket timeout (env: LEASELOCK_SOCKET_TIMEOUT_S, default: 5)
    """

    redis_url: str = field(
        default_factory=lambda: parse_str("LEASELOCK_REDIS_URL", "redis://localhost:6379/0")
    )
    redis_username: str = field(default_factory=lambda: parse_str("LEASELOCK_REDIS_USERNAME"))
    redis_password: str = field(default_factory=lambda: parse_str("LEASELOCK_REDIS_PASSWORD"))
    redis_db: int | None = field(
        default_factory=lambda: parse_int("LEASELOCK_REDIS_DB", None, min_value=0)
    )
    redis_tls: bool = field(default_factory=lambda: parse_bool("LEASELOCK_REDIS_TLS"))
    lock_key: str = field(default_factory=lambda: parse_str("LEASELOCK_KEY", "leaselock:leader"))
    identity: str = field(
        default_factory=lambda: parse_str("LEASELOCK_IDENTITY") or hostname_or_rand()
    )
    lease_duration_s: int = field(default_factory=lambda: _env_int("LEASELOCK_LEASE_S", 15))
    renew_deadline_s: int = field(default_factory=lambda: _env_int("LEASELOCK_RENEW_S", 10))
    retry_period_s: int = field(default_factory=lambda: _env_int("LEASELOCK_RETRY_S", 2))
    socket_timeout_s: float = field(
        default_factory=lambda: float(_env_int("LEASELOCK_SOCKET_TIMEOUT_S", 5))
    )

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.lock_key:
            msg = "lock_key must not be empty"
            raise ValueError(msg)
        if not self.identity:
            msg = "identity must not be empty"
            raise ValueError(msg)
        validate_timing(self.lease_duration_s, self.renew_deadline_s, self.retry_period_s)
