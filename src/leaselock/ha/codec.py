"""JSON codec for the value stored under the lease key.

Wire format (compact, fixed key order, ASCII only):

    {"record":{"holderIdentity":"p1","leaseDurationSeconds":15,
     "acquireTime":"2024-01-02T03:04:05.000000Z",
     "renewTime":"2024-01-02T03:04:05.000000Z","leaderTransitions":0},
     "epoch":"1704164645000000000"}

Decoding is tolerant of schema drift: unknown keys are ignored and absent
or null fields decode to zero values. Wrong types raise LeaseCodecError.
The update script in redis_lock.py reads record.holderIdentity from this
layout, so field names here are part of the store protocol.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from leaselock.errors import LeaseCodecError
from leaselock.ha.record import LeaseRecord, LeaseState

_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_time(value: datetime | None) -> str | None:
    """Format an aware timestamp as UTC RFC 3339 with microseconds.

    Raises:
        LeaseCodecError: ``value`` is naive
    """
    if value is None:
        return None
    if value.tzinfo is None:
        raise LeaseCodecError(f"naive timestamp {value.isoformat()!r}", op="encode")
    return value.astimezone(UTC).strftime(_TIME_FORMAT)


def parse_time(value: Any, field_name: str) -> datetime | None:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise LeaseCodecError(f"{field_name}: expected string timestamp, got {type(value).__name__}")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise LeaseCodecError(f"{field_name}: invalid timestamp {value!r}") from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _get_str(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise LeaseCodecError(f"{key}: expected string, got {type(value).__name__}")
    return value


def _get_int(obj: dict[str, Any], key: str) -> int:
    value = obj.get(key)
    if value is None:
        return 0
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise LeaseCodecError(f"{key}: expected integer, got {type(value).__name__}")
    return value


def encode_record(record: LeaseRecord) -> dict[str, Any]:
    """Convert a LeaseRecord to its JSON object form."""
    return {
        "holderIdentity": record.holder_identity,
        "leaseDurationSeconds": record.lease_duration_seconds,
        "acquireTime": format_time(record.acquire_time),
        "renewTime": format_time(record.renew_time),
        "leaderTransitions": record.leader_transitions,
    }


def decode_record(obj: Any) -> LeaseRecord:
    """Build a LeaseRecord from its JSON object form."""
    if obj is None:
        return LeaseRecord()
    if not isinstance(obj, dict):
        raise LeaseCodecError(f"record: expected object, got {type(obj).__name__}")
    return LeaseRecord(
        holder_identity=_get_str(obj, "holderIdentity"),
        lease_duration_seconds=_get_int(obj, "leaseDurationSeconds"),
        acquire_time=parse_time(obj.get("acquireTime"), "acquireTime"),
        renew_time=parse_time(obj.get("renewTime"), "renewTime"),
        leader_transitions=_get_int(obj, "leaderTransitions"),
    )


def encode_state(state: LeaseState) -> bytes:
    """Serialize a LeaseState to the bytes stored in Redis."""
    payload = {"record": encode_record(state.record), "epoch": state.epoch}
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=True).encode("ascii")


def decode_state(raw: bytes | str) -> LeaseState:
    """Deserialize the bytes stored in Redis.

    Raises:
        LeaseCodecError: Payload is not valid JSON or has wrongly typed fields
    """
    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise LeaseCodecError(f"invalid lease payload: {e}") from e
    if not isinstance(payload, dict):
        raise LeaseCodecError(f"lease payload: expected object, got {type(payload).__name__}")
    return LeaseState(record=decode_record(payload.get("record")), epoch=_get_str(payload, "epoch"))
