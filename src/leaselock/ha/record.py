"""Lease record and stored state.

LeaseRecord mirrors the leader-election record consumed by the coordinator.
LeaseState is what actually lives under the Redis key: the record plus an
epoch token bumped on every successful write.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from leaselock.errors import InvalidLeaseError


@dataclass(frozen=True)
class LeaseRecord:
    """Leader-election record.

    Attributes:
        holder_identity: Identity of the current holder ("" = vacant)
        lease_duration_seconds: Seconds the grant stays valid without renewal
        acquire_time: When the current holder acquired the lease
        renew_time: When the current holder last renewed the lease
        leader_transitions: Number of holder changes (never decreases)

    Timestamps must be timezone-aware; naive values raise InvalidLeaseError.
    """

    holder_identity: str = ""
    lease_duration_seconds: int = 0
    acquire_time: datetime | None = None
    renew_time: datetime | None = None
    leader_transitions: int = 0

    def __post_init__(self) -> None:
        for name in ("acquire_time", "renew_time"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is None:
                msg = f"{name} must be timezone-aware, got naive {value.isoformat()}"
                raise InvalidLeaseError(msg)

    @property
    def is_vacant(self) -> bool:
        return self.holder_identity == ""


@dataclass(frozen=True)
class LeaseState:
    """Value stored under the lease key.

    The epoch is diagnostic only; exclusion relies on holder identity + TTL.
    """

    record: LeaseRecord
    epoch: str = ""
