"""Utility functions for durations, object keys and event filtering."""

import re
from datetime import timedelta
from typing import NamedTuple

from .config import EXCLUDED_NAMESPACE


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


class ObjectKey(NamedTuple):
    """Namespace and name identifying a Kubernetes object."""
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


# Unit suffixes in seconds; longer suffixes first so "ms" is not read as "m"
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(
    r"(\d+\.?\d*|\.\d+)(" + "|".join(re.escape(u) for u in _DURATION_UNITS) + ")"
)


def parse_duration(duration_string: str) -> timedelta:
    """
    Parse a duration string to a timedelta.

    Examples:
        "90s" -> 0:01:30
        "1h30m" -> 1:30:00
        "1.5h" -> 1:30:00
        "300ms" -> 0:00:00.300000
        "0" -> 0:00:00

    Surrounding whitespace is not allowed.

    Raises:
        DurationError: If the string is not a valid duration or is too large
    """
    if duration_string is None:
        raise DurationError("empty duration")

    text = str(duration_string)
    original = text

    sign = 1
    if text[:1] in ("-", "+"):
        if text[0] == "-":
            sign = -1
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise DurationError(f"invalid duration {original!r}")

    seconds = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise DurationError(f"invalid duration {original!r}")
        value, unit = match.groups()
        seconds += float(value) * _DURATION_UNITS[unit]
        pos = match.end()

    try:
        return timedelta(seconds=seconds * sign)
    except (OverflowError, ValueError):
        raise DurationError(f"duration {original!r} out of range") from None


def format_duration(duration: timedelta) -> str:
    """
    Format a timedelta as a compact duration string.

    Examples:
        1:00:00 -> "1h0m0s"
        0:01:30 -> "1m30s"
        0:00:00.500000 -> "0.5s"
    """
    total = duration.total_seconds()
    sign = "-" if total < 0 else ""
    total = abs(total)

    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    seconds_str = f"{seconds:.6f}".rstrip("0").rstrip(".")

    if hours:
        return f"{sign}{int(hours)}h{int(minutes)}m{seconds_str}s"
    if minutes:
        return f"{sign}{int(minutes)}m{seconds_str}s"
    return f"{sign}{seconds_str}s"


def parse_object_key(key_string: str) -> ObjectKey:
    """Parse a "namespace/name" string into an ObjectKey."""
    namespace, sep, name = str(key_string).partition("/")
    if not sep or not namespace or not name or "/" in name:
        raise ValueError(f"expected NAMESPACE/NAME, got {key_string!r}")
    return ObjectKey(namespace, name)


def is_excluded_namespace(namespace: str, excluded_namespace: str = EXCLUDED_NAMESPACE) -> bool:
    """Check if objects in a namespace are exempt from eviction."""
    return namespace == excluded_namespace


def is_config_map_key(key: ObjectKey, config_map_key: ObjectKey) -> bool:
    """Check if a key refers to the designated ConfigMap."""
    return (key.namespace, key.name) == (config_map_key.namespace, config_map_key.name)
