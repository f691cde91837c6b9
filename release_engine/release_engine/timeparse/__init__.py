"""Human time expression parsing and relative-time formatting."""

from __future__ import annotations

from release_engine.timeparse.parser import (
    DurationParseError,
    TimeParseError,
    format_relative_time,
    format_rfc3339,
    parse_duration,
    parse_rfc3339,
    parse_time_to_utc,
)

__all__ = [
    "DurationParseError",
    "TimeParseError",
    "format_relative_time",
    "format_rfc3339",
    "parse_duration",
    "parse_rfc3339",
    "parse_time_to_utc",
]
