"""Human-readable formatting of progress metrics."""

from __future__ import annotations

from datetime import timedelta

_KB = 1024
_MB = _KB * 1024
_GB = _MB * 1024

_MINUTE_US = 60 * 1_000_000
_HOUR_US = 60 * _MINUTE_US
_DAY_US = 24 * _HOUR_US


def _trunc_div(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return -quotient if value < 0 else quotient


def format_duration(d: timedelta) -> str:
    """Format a duration as e.g. "3 days 4 hours 15 minutes"."""
    total = d // timedelta(microseconds=1)
    if total == 0:
        return "Calculating..."
    days = _trunc_div(total, _DAY_US)
    total -= days * _DAY_US
    hours = _trunc_div(total, _HOUR_US)
    total -= hours * _HOUR_US
    minutes = _trunc_div(total, _MINUTE_US)

    if days > 0:
        return f"{days} days {hours} hours {minutes} minutes"
    if hours > 0:
        return f"{hours} hours {minutes} minutes"
    return f"{minutes} minutes"


def format_bytes(num_bytes: int) -> str:
    """Format a byte count as e.g. "1.5 MB"."""
    if num_bytes >= _GB:
        return f"{num_bytes / _GB:.1f} GB"
    if num_bytes >= _MB:
        return f"{num_bytes / _MB:.1f} MB"
    if num_bytes >= _KB:
        return f"{num_bytes / _KB:.1f} KB"
    return f"{num_bytes} bytes"


def format_progress(current: int, total: int) -> str:
    return f"Processed: {current} of {total}"


def format_rates(pages_per_min: float, topics_per_hour: float, mb_per_min: float) -> str:
    return (
        f"Rate: {pages_per_min:.1f} pages/min, {topics_per_hour:.1f} topics/hour, "
        f"{mb_per_min:.2f} MB/min"
    )


def format_etc(etc: timedelta) -> str:
    """Format an estimated time to completion."""
    if etc == timedelta(0):
        return "ETC: Calculating..."
    return f"ETC: ~{format_duration(etc)}"