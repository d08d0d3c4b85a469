"""Tests for the coordinator contract.

Tests cover:
- LeaderElectionConfig / validate_timing rules
- Record builders keep leader_transitions monotonic
- is_lease_valid
- The calling pattern (get → create / update / back off) step by step
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest

from leaselock.errors import LockAlreadyExistsError, LockConflictError, LockNotFoundError
from leaselock.ha.election import (
    JITTER_FACTOR,
    LeaderCallbacks,
    LeaderElectionConfig,
    build_acquire_record,
    build_release_record,
    is_lease_valid,
    validate_timing,
)
from leaselock.ha.record import LeaseRecord
from leaselock.ha.redis_lock import RedisLock

if TYPE_CHECKING:
    from collections.abc import Callable

    import fakeredis

KEY = "leaselock:election"


def _callbacks() -> LeaderCallbacks:
    return LeaderCallbacks(
        on_started_leading=lambda stop: None,
        on_stopped_leading=lambda: None,
    )


class TestLeaderElectionConfig:
    """Validation of coordinator configuration."""

    def test_valid_config(self) -> None:
        config = LeaderElectionConfig(
            lock=MagicMock(),
            lease_duration_s=15,
            renew_deadline_s=10,
            retry_period_s=2,
            callbacks=_callbacks(),
            release_on_cancel=True,
            name="demo",
        )
        assert config.release_on_cancel is True
        assert config.callbacks.on_new_leader is None

    def test_lease_must_exceed_renew_deadline(self) -> None:
        with pytest.raises(ValueError, match=r"lease_duration.*must be greater than renew_deadline"):
            LeaderElectionConfig(MagicMock(), 10, 10, 2, _callbacks())

    def test_renew_deadline_must_exceed_jittered_retry(self) -> None:
        with pytest.raises(ValueError, match=r"renew_deadline.*must be greater than retry_period"):
            LeaderElectionConfig(MagicMock(), 15, 6, 5, _callbacks())

    def test_retry_period_minimum(self) -> None:
        with pytest.raises(ValueError, match=r"retry_period.*at least 1s"):
            validate_timing(15, 10, 0.5)

    def test_jitter_boundary(self) -> None:
        validate_timing(15, JITTER_FACTOR * 2 + 0.01, 2)
        with pytest.raises(ValueError):
            validate_timing(15, JITTER_FACTOR * 2, 2)

    def test_callbacks_required(self) -> None:
        with pytest.raises(ValueError, match="on_started_leading"):
            LeaderElectionConfig(
                MagicMock(), 15, 10, 2, LeaderCallbacks(on_stopped_leading=lambda: None)
            )
        with pytest.raises(ValueError, match="on_stopped_leading"):
            LeaderElectionConfig(
                MagicMock(), 15, 10, 2, LeaderCallbacks(on_started_leading=lambda stop: None)
            )

    def test_lock_required(self) -> None:
        with pytest.raises(ValueError, match="lock must not be None"):
            LeaderElectionConfig(None, 15, 10, 2, _callbacks())


class TestRecordBuilders:
    """leader_transitions never decreases."""

    def test_fresh_acquire(self, now: datetime) -> None:
        record = build_acquire_record(None, "p1", 15, now)
        assert record == LeaseRecord("p1", 15, now, now, 0)

    def test_renew_keeps_acquire_time(self, p1_record: LeaseRecord, now: datetime) -> None:
        later = now + timedelta(seconds=5)
        renewed = build_acquire_record(p1_record, "p1", 20, later)
        assert renewed.acquire_time == p1_record.acquire_time
        assert renewed.renew_time == later
        assert renewed.lease_duration_seconds == 20
        assert renewed.leader_transitions == p1_record.leader_transitions

    def test_takeover_bumps_transitions(self, p1_record: LeaseRecord, now: datetime) -> None:
        later = now + timedelta(seconds=30)
        taken = build_acquire_record(p1_record, "p2", 15, later)
        assert taken.holder_identity == "p2"
        assert taken.acquire_time == later
        assert taken.leader_transitions == p1_record.leader_transitions + 1

    def test_vacant_takeover_counts_as_transition(self, now: datetime) -> None:
        vacant = LeaseRecord(lease_duration_seconds=1, leader_transitions=4)
        assert build_acquire_record(vacant, "p2", 15, now).leader_transitions == 5

    def test_release_then_takeover_bumps_transitions(
        self, p1_record: LeaseRecord, now: datetime
    ) -> None:
        released = build_release_record(p1_record, now)
        taken = build_acquire_record(released, "p2", 15, now)
        assert taken.leader_transitions == p1_record.leader_transitions + 1

    def test_vacant_reacquire_by_previous_holder(
        self, p1_record: LeaseRecord, now: datetime
    ) -> None:
        released = build_release_record(p1_record, now)
        again = build_acquire_record(released, "p1", 15, now)
        assert again.leader_transitions == p1_record.leader_transitions + 1

    def test_release(self, p1_record: LeaseRecord, now: datetime) -> None:
        released = build_release_record(p1_record, now)
        assert released.is_vacant
        assert released.lease_duration_seconds == 1
        assert released.leader_transitions == p1_record.leader_transitions


class TestLeaseValidity:
    """is_lease_valid()."""

    def test_within_lease(self, p1_record: LeaseRecord, now: datetime) -> None:
        assert is_lease_valid(p1_record, now + timedelta(seconds=14))

    def test_expired(self, p1_record: LeaseRecord, now: datetime) -> None:
        assert not is_lease_valid(p1_record, now + timedelta(seconds=15))

    def test_vacant_never_valid(self, now: datetime) -> None:
        assert not is_lease_valid(LeaseRecord(lease_duration_seconds=15, renew_time=now), now)

    def test_missing_renew_time(self) -> None:
        record = LeaseRecord(holder_identity="p1", lease_duration_seconds=15)
        assert not is_lease_valid(record, MagicMock())


class TestCallingPattern:
    """Drive two locks through the coordinator's steps by hand."""

    def _try_acquire(self, lock: RedisLock, now: datetime) -> bool:
        """One coordinator poll: True if this lock is leading afterwards."""
        try:
            observed, _ = lock.get()
        except LockNotFoundError:
            try:
                lock.create(build_acquire_record(None, lock.identity, 15, now))
            except LockAlreadyExistsError:
                return False
            return True

        if observed.holder_identity not in ("", lock.identity) and is_lease_valid(observed, now):
            return False
        try:
            lock.update(build_acquire_record(observed, lock.identity, 15, now))
        except (LockConflictError, LockNotFoundError):
            return False
        return True

    def test_poll_sequence(
        self,
        fake_redis: fakeredis.FakeRedis,
        expire: Callable[[str], None],
        now: datetime,
    ) -> None:
        a = RedisLock(fake_redis, KEY, "a")
        b = RedisLock(fake_redis, KEY, "b")
        observed: list[str] = []

        def observe(lock: RedisLock) -> None:
            holder = lock.get()[0].holder_identity
            if not observed or observed[-1] != holder:
                observed.append(holder)

        assert self._try_acquire(a, now)
        observe(b)
        assert not self._try_acquire(b, now)

        assert self._try_acquire(a, now + timedelta(seconds=2))
        assert not self._try_acquire(b, now + timedelta(seconds=2))
        observe(b)

        # a stops renewing; the key is evicted after the lease
        expire(KEY)
        assert self._try_acquire(b, now + timedelta(seconds=17))
        observe(a)

        assert observed == ["a", "b"]
