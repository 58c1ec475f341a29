"""Timezone-aware time helpers.

Timestamps are persisted as RFC 3339 strings (date + time + offset). Naive
timestamps are rejected: an instant without an offset cannot be compared
reliably across hosts.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_MINUTE = timedelta(minutes=1)
_HOUR = timedelta(hours=1)
_DAY = timedelta(days=1)
_WEEK = timedelta(days=7)

# Fractional seconds are normalized to exactly six digits for fromisoformat.
_FRACTION_RE = re.compile(r"\.(\d+)")


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime without microseconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def utc_timestamp(dt: Optional[datetime] = None) -> str:
    """Render ``dt`` (default: now) as an RFC 3339 UTC timestamp with ``Z`` suffix."""
    dt = dt or utc_now()
    if dt.tzinfo is None:
        raise ValueError("utc_timestamp() requires a timezone-aware datetime")
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="seconds").replace("+00:00", "Z")


def parse_iso8601(timestamp_str: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime.

    Raises:
        ValueError: If the string is empty, malformed or carries no offset.
    """
    if not isinstance(timestamp_str, str):
        raise ValueError(f"timestamp must be a string, got {type(timestamp_str).__name__}")
    ts = timestamp_str.strip()
    if not ts:
        raise ValueError("empty timestamp")
    if ts.endswith(("Z", "z")):
        ts = ts[:-1] + "+00:00"
    ts = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), ts, count=1)
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        raise ValueError(f"timestamp has no UTC offset: {timestamp_str!r}")
    return dt


def try_parse_iso8601(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Lenient variant of :func:`parse_iso8601` returning None on failure."""
    if not timestamp_str:
        return None
    try:
        return parse_iso8601(timestamp_str)
    except ValueError:
        return None


def format_time_delta(timestamp: Optional[datetime], base: Optional[datetime] = None) -> str:
    """Render the time elapsed since ``timestamp`` as a short human string.

    Buckets: ``now`` (< 1 minute), then ``Nm ago``, ``Nh ago``, ``Nd ago`` and
    ``Nw ago``, each rounded down. Timestamps in the future (clock skew) render
    as ``now``. A missing timestamp renders as ``unknown``.
    """
    if timestamp is None:
        return "unknown"
    base = base or datetime.now(timezone.utc)
    delta = base - timestamp

    if delta < _MINUTE:
        return "now"
    if delta < _HOUR:
        return f"{delta // _MINUTE}m ago"
    if delta < _DAY:
        return f"{delta // _HOUR}h ago"
    if delta < _WEEK:
        return f"{delta // _DAY}d ago"
    return f"{delta // _WEEK}w ago"


__all__ = [
    "utc_now",
    "utc_timestamp",
    "parse_iso8601",
    "try_parse_iso8601",
    "format_time_delta",
]
