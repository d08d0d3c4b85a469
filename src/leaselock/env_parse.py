"""Environment variable parsing for leaselock settings.

Every LEASELOCK_* variable goes through these helpers so that booleans,
integers and strings behave identically everywhere.

Rules:
- unset / empty / whitespace → default value
- unknown or out-of-range values raise ``ConfigError``
"""

from __future__ import annotations

import os

TRUTHY: frozenset[str] = frozenset({"1", "true", "yes", "on"})
FALSEY: frozenset[str] = frozenset({"0", "false", "no", "off", ""})


class ConfigError(Exception):
    """Raised when an environment variable has an invalid value."""


def parse_str(name: str, default: str = "") -> str:
    """Parse a string environment variable, stripped; blank → *default*."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


def parse_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean environment variable.

    Truthy: ``1 true yes on``; falsey: ``0 false no off ""`` (case-insensitive).
    """
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in TRUTHY:
        return True
    if v in FALSEY:
        return False
    raise ConfigError(f"invalid boolean value for {name}: {raw!r}")


def parse_int(
    name: str,
    default: int | None = None,
    *,
    min_value: int | None = None,
) -> int | None:
    """Parse an integer environment variable.

    Args:
        name: Environment variable name.
        default: Value when unset or blank.
        min_value: Optional lower bound (inclusive).
    """
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    if v == "":
        return default
    try:
        result = int(v)
    except ValueError:
        raise ConfigError(f"invalid integer value for {name}: {raw!r}") from None
    if min_value is not None and result < min_value:
        raise ConfigError(f"{name}={result} is below minimum {min_value}")
    return result
