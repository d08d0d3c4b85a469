"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime

import fakeredis
import pytest

from leaselock.ha.record import LeaseRecord


@pytest.fixture
def fake_redis() -> fakeredis.FakeRedis:
    """In-process Redis with Lua scripting, so the real update script runs.

    Needs fakeredis[lua]; each test gets its own server.
    """
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=False)


@pytest.fixture
def expire(fake_redis: fakeredis.FakeRedis) -> Callable[[str], None]:
    """Let a key's TTL run out, as if the lease had elapsed."""

    def _expire(key: str) -> None:
        fake_redis.pexpire(key, 1)
        time.sleep(0.01)

    return _expire


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 1, 2, 3, 4, 5, 6, tzinfo=UTC)


@pytest.fixture
def p1_record(now: datetime) -> LeaseRecord:
    """Record naming p1 as holder with a 15s lease."""
    return LeaseRecord(
        holder_identity="p1",
        lease_duration_seconds=15,
        acquire_time=now,
        renew_time=now,
        leader_transitions=0,
    )
