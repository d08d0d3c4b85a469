"""Resource lock interface consumed by a leader-election coordinator."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from leaselock.ha.record import LeaseRecord


class ResourceLock(ABC):
    """Abstract lock backing a leader election.

    Implementations must handle:
    - Atomicity: create and update are each a single store-side step
    - Holder check: update from a non-holder fails without writing
    - Expiry: a record unrenewed for its lease duration disappears
    - Cancellation: a set cancel event is never reported as success

    The coordinator performs no locking of its own, so every method must be
    safe under unsynchronized use from many processes.
    """

    @property
    @abstractmethod
    def identity(self) -> str:
        """Return the holder identity written by this lock."""
        ...

    @abstractmethod
    def describe(self) -> str:
        """Return a human-readable label for diagnostics."""
        ...

    @abstractmethod
    def get(self, cancel: threading.Event | None = None) -> tuple[LeaseRecord, bytes]:
        """Fetch the current record and its raw stored bytes.

        Raises:
            LockNotFoundError: Key absent (carries an empty record).
            LockTransportError: Store or decoding failure.
        """
        ...

    @abstractmethod
    def create(self, record: LeaseRecord, cancel: threading.Event | None = None) -> None:
        """Create the record only if the key is absent.

        Raises:
            LockAlreadyExistsError: Another writer created it first.
        """
        ...

    @abstractmethod
    def update(self, record: LeaseRecord, cancel: threading.Event | None = None) -> None:
        """Overwrite the record if held by this identity or vacant.

        Raises:
            LockConflictError: Held by a different identity.
        """
        ...

    @abstractmethod
    def record_event(self, message: str) -> None:
        """Best-effort diagnostic sink."""
        ...
