"""Redis-based resource lock with lease semantics.

The lease record lives under a single key whose TTL equals the lease
duration, so a crashed or partitioned holder is reclaimed by expiry alone.

Safety guarantees:
- create uses SET NX PX: only the first writer wins, an unexpired key
  (even a vacant one) is never adopted
- update is one Lua script: holder check, write and TTL reset happen in a
  single server-side step, so two contenders can never both pass the check
- no retries: every outcome is returned to the caller as-is

Limitations:
- cjson must be available to Redis scripts (it is on stock Redis)
- the epoch is diagnostic only, ordering is not enforced with it
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

import redis

from leaselock.errors import (
    InvalidLeaseError,
    LeaseCodecError,
    LockAlreadyExistsError,
    LockCancelledError,
    LockConflictError,
    LockNotFoundError,
    LockTransportError,
)
from leaselock.ha.codec import decode_state, encode_state
from leaselock.ha.interface import ResourceLock
from leaselock.ha.record import LeaseRecord, LeaseState

if TYPE_CHECKING:
    from redis.commands.core import Script

logger = logging.getLogger(__name__)

# KEYS[1] = lease key
# ARGV[1] = caller identity, ARGV[2] = encoded state, ARGV[3] = TTL in ms
UPDATE_SCRIPT = """
local val = redis.call("GET", KEYS[1])
if not val then
  return redis.error_reply("NOTFOUND")
end
local ok, current = pcall(cjson.decode, val)
if not ok or type(current) ~= "table" then
  return redis.error_reply("BADVALUE")
end
-- JSON null decodes to cjson.null (userdata) and counts as absent
local scalar = {string = true, number = true, boolean = true}
local holder = ""
local record = current.record
if type(record) == "table" then
  local h = record.holderIdentity
  if type(h) == "string" then
    holder = h
  elseif scalar[type(h)] or type(h) == "table" then
    return redis.error_reply("BADVALUE")
  end
elseif scalar[type(record)] then
  return redis.error_reply("BADVALUE")
end
if holder ~= "" and holder ~= ARGV[1] then
  return redis.error_reply("NOTHOLDER " .. holder)
end
redis.call("SET", KEYS[1], ARGV[2], "PX", ARGV[3])
return "OK"
"""

_NOT_FOUND = "NOTFOUND"
_BAD_VALUE = "BADVALUE"
_NOT_HOLDER = "NOTHOLDER"


class RedisLock(ResourceLock):
    """Lease lock stored as one Redis key.

    Usage:
        client = build_redis_client(settings)
        lock = RedisLock(client, "leaselock:leader", "host-a")
        try:
            record, _ = lock.get()
        except LockNotFoundError:
            lock.create(build_acquire_record(None, lock.identity, 15, now))

    The client must be created with decode_responses=False. One RedisLock
    per coordinated role; instances share nothing but the Redis client.
    """

    def __init__(self, client: redis.Redis, key: str, identity: str) -> None:
        self._client = client
        self._key = key
        self._identity = identity
        self._update_script: Script = client.register_script(UPDATE_SCRIPT)
        self._epoch_lock = threading.Lock()
        self._last_epoch = 0

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def key(self) -> str:
        return self._key

    def describe(self) -> str:
        return f"redis/{self._key}"

    def record_event(self, message: str) -> None:
        logger.info(
            "Lease event: %s",
            message,
            extra={"lock": self.describe(), "identity": self._identity},
        )

    def get(self, cancel: threading.Event | None = None) -> tuple[LeaseRecord, bytes]:
        """Fetch the current record.

        Raises:
            LockNotFoundError: Key absent; ``err.record`` is an empty record.
            LockTransportError: Redis failure or undecodable value.
            LockCancelledError: ``cancel`` was set.
        """
        state, raw = self._read("get", cancel)
        return state.record, raw

    def load_state(self, cancel: threading.Event | None = None) -> LeaseState:
        """Fetch the current record together with its epoch."""
        state, _ = self._read("load_state", cancel)
        return state

    def create(self, record: LeaseRecord, cancel: threading.Event | None = None) -> None:
        """Create the lease if the key is absent (SET NX PX).

        Raises:
            LockAlreadyExistsError: Key exists, including an unexpired vacant record.
            LockTransportError: Redis failure.
            LockCancelledError: ``cancel`` was set.
        """
        ttl_ms = self._ttl_ms(record)
        data = encode_state(LeaseState(record=record, epoch=self._next_epoch()))
        self._check_cancel(cancel, "create")

        try:
            created = self._client.set(self._key, data, nx=True, px=ttl_ms)
        except redis.RedisError as e:
            self._log_transport("create", e)
            raise LockTransportError("create", f"Redis SET NX failed for {self._key}: {e}") from e

        if not created:
            logger.debug(
                "Create lost race, lease exists",
                extra={"lock": self.describe(), "identity": self._identity},
            )
            raise LockAlreadyExistsError(self._key)

        self._check_cancel(cancel, "create")
        logger.info(
            "Lease created",
            extra={
                "lock": self.describe(),
                "identity": self._identity,
                "holder": record.holder_identity,
                "ttl_ms": ttl_ms,
            },
        )

    def update(self, record: LeaseRecord, cancel: threading.Event | None = None) -> None:
        """Overwrite the lease if held by this identity or vacant.

        The holder check, write and TTL reset run as one Lua script.

        Raises:
            LockConflictError: Held by another identity; record unchanged.
            LockNotFoundError: Key absent (expired or never created).
            LockTransportError: Redis failure or undecodable stored value.
            LockCancelledError: ``cancel`` was set.
        """
        ttl_ms = self._ttl_ms(record)
        data = encode_state(LeaseState(record=record, epoch=self._next_epoch()))
        self._check_cancel(cancel, "update")

        try:
            self._update_script(keys=[self._key], args=[self._identity, data, ttl_ms])
        except redis.ResponseError as e:
            raise self._map_script_error(e) from e
        except redis.RedisError as e:
            self._log_transport("update", e)
            raise LockTransportError("update", f"Redis update script failed for {self._key}: {e}") from e

        self._check_cancel(cancel, "update")
        logger.debug(
            "Lease updated",
            extra={
                "lock": self.describe(),
                "identity": self._identity,
                "holder": record.holder_identity,
                "ttl_ms": ttl_ms,
            },
        )

    def _read(self, op: str, cancel: threading.Event | None) -> tuple[LeaseState, bytes]:
        self._check_cancel(cancel, op)

        try:
            raw = self._client.get(self._key)
        except redis.RedisError as e:
            self._log_transport(op, e)
            raise LockTransportError(op, f"Redis GET failed for {self._key}: {e}") from e

        self._check_cancel(cancel, op)

        if raw is None:
            raise LockNotFoundError(self._key, LeaseRecord())
        if isinstance(raw, str):
            raw = raw.encode()
        return decode_state(raw), raw

    def _map_script_error(self, error: redis.ResponseError) -> Exception:
        message = str(error).strip()
        if message.startswith(_NOT_HOLDER):
            holder = message[len(_NOT_HOLDER) :].strip()
            logger.debug(
                "Update rejected, not holder",
                extra={"lock": self.describe(), "identity": self._identity, "holder": holder},
            )
            return LockConflictError(self._key, self._identity, holder)
        if message.startswith(_NOT_FOUND):
            return LockNotFoundError(self._key, LeaseRecord())
        if message.startswith(_BAD_VALUE):
            return LeaseCodecError(f"stored value under {self._key} is not a lease", op="update")
        self._log_transport("update", error)
        return LockTransportError("update", f"Redis update script failed for {self._key}: {message}")

    def _next_epoch(self) -> str:
        """Return a time-based token, strictly increasing per lock instance."""
        with self._epoch_lock:
            self._last_epoch = max(time.time_ns(), self._last_epoch + 1)
            return str(self._last_epoch)

    def _ttl_ms(self, record: LeaseRecord) -> int:
        if record.lease_duration_seconds <= 0:
            msg = f"lease_duration_seconds ({record.lease_duration_seconds}) must be > 0"
            raise InvalidLeaseError(msg)
        return record.lease_duration_seconds * 1000

    def _check_cancel(self, cancel: threading.Event | None, op: str) -> None:
        if cancel is not None and cancel.is_set():
            raise LockCancelledError(op)

    def _log_transport(self, op: str, error: Exception) -> None:
        logger.warning(
            "Redis %s failed: %s",
            op,
            error,
            extra={"lock": self.describe(), "identity": self._identity, "op": op},
        )
