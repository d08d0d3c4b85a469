"""Redis connection setup for the lease lock.

Builds redis-py clients from LockSettings: a ``redis://``, ``rediss://`` or
``unix://`` URL (parsed by redis-py, query options included) or a plain
``host:port`` address, with username/password/db overrides and optional TLS
(minimum TLS 1.2). Also provides the default identity helper and address
masking for logs.
"""

from __future__ import annotations

import logging
import socket
import ssl
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import redis
from redis.connection import parse_url

from leaselock.env_parse import ConfigError
from leaselock.errors import LockTransportError

if TYPE_CHECKING:
    from leaselock.config import LockSettings

logger = logging.getLogger(__name__)

DEFAULT_REDIS_PORT = 6379


def hostname_or_rand() -> str:
    """Return the hostname, or ``inst-<ns>`` when it is unavailable."""
    try:
        host = socket.gethostname()
    except OSError:
        host = ""
    if host:
        return host
    return f"inst-{time.time_ns()}"


def safe_redis_addr(addr: str) -> str:
    """Mask the password in a Redis URL for logging."""
    if "://" not in addr:
        return addr
    parts = urlsplit(addr)
    if parts.password is None:
        return addr
    userinfo = f"{parts.username or ''}:***"
    host = parts.hostname or ""
    netloc = f"{userinfo}@{host}:{parts.port}" if parts.port else f"{userinfo}@{host}"
    return parts._replace(netloc=netloc).geturl()


def _connection_kwargs(addr: str) -> dict[str, Any]:
    """Connection-pool kwargs for a Redis URL or a plain host:port."""
    if "://" in addr:
        try:
            return parse_url(addr)
        except ValueError as e:
            raise ConfigError(f"invalid redis URL {safe_redis_addr(addr)!r}: {e}") from None

    host, sep, port = addr.rpartition(":")
    if not sep:
        return {"host": addr or "localhost", "port": DEFAULT_REDIS_PORT}
    try:
        return {"host": host or "localhost", "port": int(port)}
    except ValueError:
        raise ConfigError(f"invalid redis address: {addr!r}") from None


def build_redis_client(settings: LockSettings) -> redis.Redis:
    """Create a redis-py client from settings.

    URL query options (``ssl_cert_reqs``, ``health_check_interval``, ...)
    are kept; socket timeouts from settings apply unless the URL sets them.
    Settings override URL credentials and db when set. TLS is enabled by a
    ``rediss://`` URL or by ``settings.redis_tls``.
    """
    kwargs = _connection_kwargs(settings.redis_url)
    if settings.redis_username:
        kwargs["username"] = settings.redis_username
    if settings.redis_password:
        kwargs["password"] = settings.redis_password
    if settings.redis_db is not None:
        kwargs["db"] = settings.redis_db

    conn_class = kwargs.get("connection_class", redis.Connection)
    if settings.redis_tls and conn_class is redis.Connection:
        conn_class = redis.SSLConnection
    elif settings.redis_tls and conn_class is redis.UnixDomainSocketConnection:
        raise ConfigError("TLS is not supported for unix:// Redis URLs")
    kwargs["connection_class"] = conn_class
    if conn_class is redis.SSLConnection:
        kwargs["ssl_min_version"] = ssl.TLSVersion.TLSv1_2

    kwargs["decode_responses"] = False
    kwargs.setdefault("socket_timeout", settings.socket_timeout_s)
    kwargs.setdefault("socket_connect_timeout", settings.socket_timeout_s)

    return redis.Redis.from_pool(redis.ConnectionPool(**kwargs))


def ping_store(client: redis.Redis, addr: str = "") -> None:
    """Verify the Redis connection.

    Raises:
        LockTransportError: Redis unreachable or rejected the ping
    """
    try:
        client.ping()
    except redis.RedisError as e:
        logger.error("Failed to connect to Redis: %s", e, extra={"redis_url": safe_redis_addr(addr)})
        raise LockTransportError("ping", f"Redis ping failed: {e}") from e
    logger.info("Connected to Redis", extra={"redis_url": safe_redis_addr(addr)})
