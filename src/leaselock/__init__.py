"""leaselock - Redis lease lock for leader election.

Provides an atomic, TTL-bounded, holder-checked lease record in Redis that
a leader-election coordinator drives through get/create/update.

Note: version is sourced from package metadata (pyproject.toml).
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from leaselock.errors import (
    LockAlreadyExistsError,
    LockCancelledError,
    LockConflictError,
    LockError,
    LockNotFoundError,
    LockTransportError,
)
from leaselock.ha import LeaseRecord, RedisLock


def _pkg_version() -> str:
    try:
        return version("leaselock")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _pkg_version()

__all__ = [
    "LeaseRecord",
    "LockAlreadyExistsError",
    "LockCancelledError",
    "LockConflictError",
    "LockError",
    "LockNotFoundError",
    "LockTransportError",
    "RedisLock",
    "__version__",
]
