"""Lease lock exception hierarchy.

Every failure path of the lock surfaces as one of these; the lock never
retries and never exits the process.

Exception hierarchy:
- LockError (base)
  - LockNotFoundError (key absent)
  - LockAlreadyExistsError (lost the create race)
  - LockConflictError (update attempted by a non-holder)
  - LockTransportError (Redis I/O, timeouts, script failures)
    - LeaseCodecError (stored value could not be encoded/decoded)
  - LockCancelledError (caller's cancel event was set)
  - InvalidLeaseError (record rejected before touching the store)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from leaselock.ha.record import LeaseRecord


class LockError(Exception):
    """Base exception for all lease lock errors."""

    pass


class LockNotFoundError(LockError):
    """The lease key does not exist.

    Attributes:
        key: Redis key that was looked up
        record: Empty default record (vacant, zero lease)
        raw: Raw bytes read from the store (always empty)
    """

    def __init__(self, key: str, record: LeaseRecord) -> None:
        self.key = key
        self.record = record
        self.raw = b""
        super().__init__(f"Lease '{key}' not found")


class LockAlreadyExistsError(LockError):
    """Create lost the race: the key already exists (possibly not yet evicted)."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Lease '{key}' already exists")


class LockConflictError(LockError):
    """Update rejected because another identity holds the lease.

    The stored record is left unchanged.

    Attributes:
        key: Redis key of the lease
        identity: Identity that attempted the update
        holder: Identity currently holding the lease
    """

    def __init__(self, key: str, identity: str, holder: str) -> None:
        self.key = key
        self.identity = identity
        self.holder = holder
        super().__init__(f"Lease '{key}' is held by '{holder}', not '{identity}'")


class LockTransportError(LockError):
    """Redis connectivity, timeout or protocol failure.

    Attributes:
        op: Operation that failed (get, create, update, ping)
    """

    def __init__(self, op: str, message: str | None = None) -> None:
        self.op = op
        super().__init__(message or f"Transport error during {op}")


class LeaseCodecError(LockTransportError):
    """Lease value could not be serialized or deserialized."""

    def __init__(self, message: str, op: str = "decode") -> None:
        super().__init__(op, message)


class LockCancelledError(LockError):
    """Operation aborted because the caller's cancel event was set.

    Raised before the round trip if already cancelled, or after it if the
    event was set while the call was in flight. Never means success.
    """

    def __init__(self, op: str) -> None:
        self.op = op
        super().__init__(f"Lease operation '{op}' cancelled")


class InvalidLeaseError(LockError, ValueError):
    """Record is not writable (e.g. lease duration <= 0)."""

    pass
