"""Prometheus duration strings ("30d", "1h30m", "500ms")."""

from __future__ import annotations

import re
from datetime import timedelta

_DURATION_RE = re.compile(
    r"^(?:(\d+)y)?(?:(\d+)w)?(?:(\d+)d)?(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?(?:(\d+)ms)?$"
)

_MS_SECOND = 1000
_MS_MINUTE = 60 * _MS_SECOND
_MS_HOUR = 60 * _MS_MINUTE
_MS_DAY = 24 * _MS_HOUR
_MS_WEEK = 7 * _MS_DAY
_MS_YEAR = 365 * _MS_DAY

# (unit, milliseconds, only when exact)
_UNITS: list[tuple[str, int, bool]] = [
    ("y", _MS_YEAR, True),
    ("w", _MS_WEEK, True),
    ("d", _MS_DAY, False),
    ("h", _MS_HOUR, False),
    ("m", _MS_MINUTE, False),
    ("s", _MS_SECOND, False),
    ("ms", 1, False),
]

_PARSE_MULTIPLIERS = [_MS_YEAR, _MS_WEEK, _MS_DAY, _MS_HOUR, _MS_MINUTE, _MS_SECOND, 1]


def parse_duration(value: str) -> timedelta:
    """Parse a Prometheus duration like '5m' or '1h30m' into a timedelta.

    Units must appear in descending order. "0" is accepted as zero.
    Raises ValueError on anything else.
    """
    if value == "0":
        return timedelta(0)
    match = _DURATION_RE.match(value or "")
    if match is None or not any(match.groups()):
        raise ValueError(f"not a valid duration string: {value!r}")
    total_ms = 0
    for group, multiplier in zip(match.groups(), _PARSE_MULTIPLIERS):
        if group:
            total_ms += int(group) * multiplier
    return timedelta(milliseconds=total_ms)


def format_duration(value: timedelta) -> str:
    """Render a timedelta the way Prometheus prints durations.

    Years and weeks are only used when they divide the duration exactly,
    so 28 days prints as '4w' but 30 days stays '30d'.
    """
    ms = value // timedelta(milliseconds=1)
    if ms == 0:
        return "0s"
    out = ""
    if ms < 0:
        out = "-"
        ms = -ms
    for unit, mult, exact in _UNITS:
        if exact and ms % mult != 0:
            continue
        count = ms // mult
        if count > 0:
            out += f"{count}{unit}"
            ms -= count * mult
    return out


def to_timedelta(value: timedelta | str) -> timedelta:
    """Accept either a timedelta or a duration string.

    Raises ValueError for durations shorter than one millisecond, which
    cannot be rendered as a PromQL range.
    """
    if not isinstance(value, timedelta):
        value = parse_duration(value)
    if value < timedelta(milliseconds=1):
        raise ValueError(f"duration must be at least 1ms, got {value!r}")
    return value
