"""HA (High Availability) lease lock for leader election.

This module provides single-leader safety through a Redis lease lock.

Architecture:
- Multiple processes contend for one Redis key per coordinated role
- The holder renews the key before its TTL elapses
- A crashed holder is reclaimed purely by TTL expiry
- An external coordinator drives get/create/update and fires callbacks

Components:
- LeaseRecord / LeaseState: stored record and its epoch
- RedisLock: atomic, holder-checked access to the record
- ResourceLock: interface a coordinator consumes
- LeaderCallbacks / LeaderElectionConfig: coordinator contract
"""

from leaselock.ha.codec import decode_state, encode_state
from leaselock.ha.election import (
    LeaderCallbacks,
    LeaderElectionConfig,
    build_acquire_record,
    build_release_record,
    is_lease_valid,
)
from leaselock.ha.interface import ResourceLock
from leaselock.ha.record import LeaseRecord, LeaseState
from leaselock.ha.redis_lock import RedisLock

__all__ = [
    "LeaderCallbacks",
    "LeaderElectionConfig",
    "LeaseRecord",
    "LeaseState",
    "RedisLock",
    "ResourceLock",
    "build_acquire_record",
    "build_release_record",
    "decode_state",
    "encode_state",
    "is_lease_valid",
]
