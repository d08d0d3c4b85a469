"""Project CLI entrypoint.

Operator commands for a lease lock:
- leaselock status: Show the current holder, lease and epoch
- leaselock release: Vacate the lease if held by --id
- leaselock describe: Show the lock label and Redis address

Connection settings come from LEASELOCK_* env vars, flags override them.
Exit codes: 0 ok, 1 conflict, 2 config/transport error.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from importlib.metadata import PackageNotFoundError, version
from typing import Any

from leaselock.config import LockSettings
from leaselock.env_parse import ConfigError
from leaselock.errors import LockConflictError, LockError, LockNotFoundError
from leaselock.ha.codec import format_time
from leaselock.ha.election import build_release_record, is_lease_valid
from leaselock.ha.redis_lock import RedisLock
from leaselock.store import build_redis_client, ping_store, safe_redis_addr

logger = logging.getLogger(__name__)


def _pkg_version() -> str:
    try:
        return version("leaselock")
    except PackageNotFoundError:
        return "0.0.0"


def _settings_from_args(args: argparse.Namespace) -> LockSettings:
    overrides: dict[str, Any] = {}
    if args.redis:
        overrides["redis_url"] = args.redis
    if args.lock_key:
        overrides["lock_key"] = args.lock_key
    if args.id:
        overrides["identity"] = args.id
    return LockSettings(**overrides)


def _open_lock(settings: LockSettings) -> RedisLock:
    client = build_redis_client(settings)
    ping_store(client, settings.redis_url)
    return RedisLock(client, settings.lock_key, settings.identity)


def _cmd_status(args: argparse.Namespace, settings: LockSettings) -> int:
    lock = _open_lock(settings)
    now = datetime.now(UTC)

    try:
        state = lock.load_state()
    except LockNotFoundError:
        if args.json:
            print(json.dumps({"lock": lock.describe(), "exists": False}))
        else:
            print(f"{lock.describe()}: vacant (no record)")
        return 0

    record = state.record
    body = {
        "lock": lock.describe(),
        "exists": True,
        "holder": record.holder_identity,
        "lease_duration_seconds": record.lease_duration_seconds,
        "acquire_time": format_time(record.acquire_time),
        "renew_time": format_time(record.renew_time),
        "leader_transitions": record.leader_transitions,
        "epoch": state.epoch,
        "valid": is_lease_valid(record, now),
    }
    if args.json:
        print(json.dumps(body, indent=2))
        return 0

    print(f"{lock.describe()}:")
    print(f"  holder:      {record.holder_identity or '(vacant)'}")
    print(f"  lease:       {record.lease_duration_seconds}s (valid: {body['valid']})")
    print(f"  acquired:    {body['acquire_time']}")
    print(f"  renewed:     {body['renew_time']}")
    print(f"  transitions: {record.leader_transitions}")
    print(f"  epoch:       {state.epoch}")
    return 0


def _cmd_release(args: argparse.Namespace, settings: LockSettings) -> int:
    lock = _open_lock(settings)

    try:
        record, _ = lock.get()
    except LockNotFoundError:
        print(f"{lock.describe()}: no lease to release")
        return 0

    if record.is_vacant:
        print(f"{lock.describe()}: already vacant")
        return 0

    try:
        lock.update(build_release_record(record, datetime.now(UTC)))
    except LockConflictError as e:
        print(f"{lock.describe()}: held by '{e.holder}', not '{lock.identity}'", file=sys.stderr)
        return 1
    except LockNotFoundError:
        print(f"{lock.describe()}: lease expired before release")
        return 0

    lock.record_event(f"{lock.identity} released {lock.describe()}")
    print(f"{lock.describe()}: released by {lock.identity}")
    return 0


def _cmd_describe(args: argparse.Namespace, settings: LockSettings) -> int:
    print(f"lock:     redis/{settings.lock_key}")
    print(f"redis:    {safe_redis_addr(settings.redis_url)}")
    print(f"identity: {settings.identity}")
    print(
        f"timing:   lease={settings.lease_duration_s}s "
        f"renew={settings.renew_deadline_s}s retry={settings.retry_period_s}s"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leaselock", description="Redis lease lock CLI")
    parser.add_argument("--version", action="version", version=f"leaselock {_pkg_version()}")
    parser.add_argument("--redis", help="Redis URL or host:port (default: $LEASELOCK_REDIS_URL)")
    parser.add_argument("--lock-key", help="Lease key (default: $LEASELOCK_KEY)")
    parser.add_argument("--id", help="Holder identity (default: $LEASELOCK_IDENTITY or hostname)")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_status = sub.add_parser("status", help="Show the current lease")
    p_status.add_argument("--json", action="store_true", help="Print JSON")

    sub.add_parser("release", help="Vacate the lease if held by --id")
    sub.add_parser("describe", help="Show lock label and connection settings")

    return parser


_COMMANDS = {
    "status": _cmd_status,
    "release": _cmd_release,
    "describe": _cmd_describe,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = _settings_from_args(args)
    except (ConfigError, ValueError) as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 2

    try:
        return _COMMANDS[args.cmd](args, settings)
    except ConfigError as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 2
    except LockError as e:
        logger.debug("Command %s failed", args.cmd, exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
