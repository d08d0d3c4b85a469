"""Coordinator-facing contract for leader election.

The polling/renewal loop belongs to an external coordinator. This module
provides what such a coordinator needs from us:

- LeaderCallbacks: the callback surface fired on leadership changes
- LeaderElectionConfig: timing configuration, validated up front
- build_acquire_record / build_release_record: records to write, keeping
  leader_transitions monotonic
- is_lease_valid: whether an observed holder is still live

Calling pattern expected from the coordinator:
1. get(); on LockNotFoundError, create(build_acquire_record(None, ...))
2. vacant or held by self: update(build_acquire_record(observed, ...))
   before the renew deadline elapses
3. held by another identity with a valid lease: wait retry_period, re-poll
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from leaselock.ha.interface import ResourceLock
from leaselock.ha.record import LeaseRecord

# Matches the jitter applied by the coordinator to retry_period
JITTER_FACTOR = 1.2


@dataclass
class LeaderCallbacks:
    """Callbacks invoked by the coordinator.

    Attributes:
        on_started_leading: Called once per acquisition with an event that is
            set when leadership ends; the callback should return once it is set
        on_stopped_leading: Called once on release, renewal failure or cancellation
        on_new_leader: Called whenever the observed holder changes (optional)
    """

    on_started_leading: Callable[[threading.Event], None] | None = None
    on_stopped_leading: Callable[[], None] | None = None
    on_new_leader: Callable[[str], None] | None = None


@dataclass
class LeaderElectionConfig:
    """Configuration handed to the coordinator.

    Attributes:
        lock: Resource lock backing the election
        lease_duration_s: How long non-leaders wait before force-acquiring
        renew_deadline_s: How long the leader retries renewing before giving up
        retry_period_s: Wait between acquire/renew attempts
        callbacks: Leadership callbacks
        release_on_cancel: Write a vacant record when the leader is cancelled
        name: Label for diagnostics
    """

    lock: ResourceLock | None
    lease_duration_s: float
    renew_deadline_s: float
    retry_period_s: float
    callbacks: LeaderCallbacks
    release_on_cancel: bool = False
    name: str = ""

    def __post_init__(self) -> None:
        """Validate configuration."""
        validate_timing(self.lease_duration_s, self.renew_deadline_s, self.retry_period_s)
        if self.callbacks.on_started_leading is None:
            msg = "on_started_leading callback must not be None"
            raise ValueError(msg)
        if self.callbacks.on_stopped_leading is None:
            msg = "on_stopped_leading callback must not be None"
            raise ValueError(msg)
        if self.lock is None:
            msg = "lock must not be None"
            raise ValueError(msg)


def validate_timing(lease_duration_s: float, renew_deadline_s: float, retry_period_s: float) -> None:
    """Check coordinator timing rules.

    Raises:
        ValueError: If a rule is violated
    """
    if lease_duration_s <= renew_deadline_s:
        msg = f"lease_duration ({lease_duration_s}s) must be greater than renew_deadline ({renew_deadline_s}s)"
        raise ValueError(msg)
    if renew_deadline_s <= JITTER_FACTOR * retry_period_s:
        msg = (
            f"renew_deadline ({renew_deadline_s}s) must be greater than "
            f"retry_period*{JITTER_FACTOR} ({JITTER_FACTOR * retry_period_s}s)"
        )
        raise ValueError(msg)
    if lease_duration_s < 1:
        msg = f"lease_duration ({lease_duration_s}s) must be at least 1s"
        raise ValueError(msg)
    if renew_deadline_s < 1:
        msg = f"renew_deadline ({renew_deadline_s}s) must be at least 1s"
        raise ValueError(msg)
    if retry_period_s < 1:
        msg = f"retry_period ({retry_period_s}s) must be at least 1s"
        raise ValueError(msg)


def build_acquire_record(
    observed: LeaseRecord | None,
    identity: str,
    lease_duration_seconds: int,
    now: datetime,
) -> LeaseRecord:
    """Build the record to write when acquiring or renewing.

    Renewal by the current holder keeps acquire_time and leader_transitions.
    Any other write over an observed record (including a vacant one) is a
    holder change: acquire_time resets and leader_transitions goes up by one.
    A fresh create (no observed record) starts the count at 0.
    """
    if observed is not None and observed.holder_identity == identity:
        return replace(
            observed,
            lease_duration_seconds=lease_duration_seconds,
            renew_time=now,
        )

    transitions = 0
    if observed is not None:
        transitions = observed.leader_transitions + 1

    return LeaseRecord(
        holder_identity=identity,
        lease_duration_seconds=lease_duration_seconds,
        acquire_time=now,
        renew_time=now,
        leader_transitions=transitions,
    )


def build_release_record(observed: LeaseRecord, now: datetime) -> LeaseRecord:
    """Build the vacant record written on voluntary release."""
    return LeaseRecord(
        holder_identity="",
        lease_duration_seconds=1,
        acquire_time=now,
        renew_time=now,
        leader_transitions=observed.leader_transitions,
    )


def is_lease_valid(record: LeaseRecord, now: datetime) -> bool:
    """Return True if the record's holder is still within its lease."""
    if record.is_vacant or record.renew_time is None:
        return False
    return record.renew_time + timedelta(seconds=record.lease_duration_seconds) > now
