"""Parsing and formatting of human time expressions.

Durations accept the usual base units (``h``, ``m``, ``s``, ``ms``, ``us``,
``ns``, composable as in ``1h30m``) plus two coarse units that the base syntax
lacks: ``d`` (days) and ``w`` (weeks).  Points in time accept RFC 3339
timestamps, bare ``YYYY-MM-DD`` dates, or a duration meaning "that long ago".
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta
from decimal import Decimal


class DurationParseError(ValueError):
    """Raised when a duration expression cannot be parsed."""


class TimeParseError(ValueError):
    """Raised when a time expression matches none of the accepted shapes."""


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------

_UNIT_NANOSECONDS: dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # micro sign
    "μs": 1_000,  # greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_UNIT_PATTERN = "ns|us|µs|μs|ms|h|m|s"
_NUMBER_PATTERN = r"(?:\d+\.?\d*|\.\d+)"
_BASE_DURATION_RE = re.compile(rf"^[-+]?(?:{_NUMBER_PATTERN}(?:{_UNIT_PATTERN}))+$")
_COMPONENT_RE = re.compile(rf"({_NUMBER_PATTERN})({_UNIT_PATTERN})")
_COARSE_DURATION_RE = re.compile(r"^(\d+)([dw])$")

_COARSE_UNITS: dict[str, timedelta] = {
    "d": timedelta(hours=24),
    "w": timedelta(hours=7 * 24),
}


def _parse_base_duration(text: str) -> timedelta | None:
    """Parse a duration built only from base units, or return ``None``."""
    if text in ("0", "+0", "-0"):
        return timedelta(0)
    if not _BASE_DURATION_RE.match(text):
        return None

    sign = -1 if text.startswith("-") else 1
    total_ns = Decimal(0)
    for number, unit in _COMPONENT_RE.findall(text.lstrip("+-")):
        total_ns += Decimal(number) * _UNIT_NANOSECONDS[unit]

    # timedelta resolution is one microsecond; sub-microsecond parts truncate.
    return timedelta(microseconds=sign * int(total_ns / 1000))


def parse_duration(text: str) -> timedelta:
    """Parse a duration string with support for days and weeks.

    Examples::

        "2h"    -> 2 hours
        "30m"   -> 30 minutes
        "1h30m" -> 90 minutes
        "1d"    -> 24 hours
        "2w"    -> 336 hours

    Raises
    ------
    DurationParseError
        If *text* is neither a base-unit duration nor ``<int>d`` / ``<int>w``.
    """
    base = _parse_base_duration(text)
    if base is not None:
        return base

    match = _COARSE_DURATION_RE.match(text)
    if match is None:
        raise DurationParseError(f"invalid duration: {text} (expected format: 2h, 30m, 1d, 2w, etc.)")

    value, unit = match.groups()
    return int(value) * _COARSE_UNITS[unit]


# ---------------------------------------------------------------------------
# Points in time
# ---------------------------------------------------------------------------

_RFC3339_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$",
)
_DATE_ONLY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def parse_rfc3339(text: str) -> datetime:
    """Parse a strict RFC 3339 timestamp and return it as a UTC datetime.

    The embedded offset decides which instant is meant; the result is that
    same instant expressed in UTC.

    Raises
    ------
    TimeParseError
        If *text* is not an RFC 3339 timestamp or names an impossible date.
    """
    match = _RFC3339_RE.match(text)
    if match is None:
        raise TimeParseError(f"invalid RFC3339 timestamp: {text}")

    year, month, day, hour, minute, second, fraction, offset = match.groups()
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))

    if offset == "Z":
        tz_offset = timedelta(0)
    else:
        offset_sign = -1 if offset[0] == "-" else 1
        offset_hours, offset_minutes = int(offset[1:3]), int(offset[4:6])
        if offset_hours > 23 or offset_minutes > 59:
            raise TimeParseError(f"invalid RFC3339 timestamp: {text}")
        tz_offset = offset_sign * timedelta(hours=offset_hours, minutes=offset_minutes)

    try:
        naive = datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            microsecond,
        )
    except ValueError as exc:
        raise TimeParseError(f"invalid RFC3339 timestamp: {text}") from exc

    return (naive - tz_offset).replace(tzinfo=UTC)


def format_rfc3339(moment: datetime) -> str:
    """Format *moment* as a second-precision RFC 3339 string in UTC.

    Naive datetimes are taken to already be in UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_time_to_utc(text: str, now: datetime | None = None) -> datetime:
    """Parse a time expression into a UTC timestamp.

    Accepted shapes, tried in order:

    1. RFC 3339 (``2025-11-02T15:30:00Z`` or ``2025-11-02T15:30:00-05:00``).
       The embedded offset is authoritative; the instant is returned in UTC.
    2. Date only (``2025-11-02``), meaning midnight UTC of that day.
    3. A duration (``1d``, ``2w``, ``12h``) counted back from *now*.

    Raises
    ------
    TimeParseError
        If *text* matches none of the shapes above.
    """
    try:
        return parse_rfc3339(text)
    except TimeParseError:
        pass

    date_match = _DATE_ONLY_RE.match(text)
    if date_match is not None:
        year, month, day = (int(part) for part in date_match.groups())
        try:
            return datetime(year, month, day, tzinfo=UTC)
        except ValueError:
            pass

    try:
        duration = parse_duration(text)
    except DurationParseError as exc:
        raise TimeParseError(
            f"invalid time: {text} (expected RFC3339, YYYY-MM-DD, or duration like 1d, 2w, 12h)"
        ) from exc

    reference = now if now is not None else datetime.now(UTC)
    return reference.astimezone(UTC) - duration


# ---------------------------------------------------------------------------
# Relative formatting
# ---------------------------------------------------------------------------


def _plural(count: int, unit: str) -> str:
    if count == 1:
        return f"1 {unit}"
    return f"{count} {unit}s"


def format_relative_time(delta: timedelta) -> str:
    """Format a duration as a human-readable relative phrase.

    Buckets are tested top-down and the first match wins.  Every division is
    an integer division on whole days.
    """
    if delta < timedelta(minutes=1):
        return "less than a minute"

    if delta < timedelta(hours=1):
        return _plural(int(delta.total_seconds() // 60), "minute")

    if delta < timedelta(hours=24):
        return _plural(int(delta.total_seconds() // 3600), "hour")

    days = int(delta.total_seconds() // 3600) // 24
    if days <= 28:
        return _plural(days, "day")

    weeks = days // 7
    months = days // 30
    if months < 1:
        return _plural(weeks, "week")

    years = days // 365
    if months < 12 or years < 1:
        return _plural(months, "month")

    return _plural(years, "year")
