"""
Human-readable formatting for file sizes, durations and upload times shown on
video cards.
"""

import math

from datetime import UTC, datetime


SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")
SIZE_BASE = 1024

# (upper bound in seconds, unit length in seconds or None for fixed text, text)
RELATIVE_TIME_STEPS = (
    (45, None, "a few seconds"),
    (90, None, "a minute"),
    (45 * 60, 60, "minutes"),
    (90 * 60, None, "an hour"),
    (22 * 3600, 3600, "hours"),
    (36 * 3600, None, "a day"),
    (26 * 86400, 86400, "days"),
    (46 * 86400, None, "a month"),
    (320 * 86400, 30 * 86400, "months"),
    (548 * 86400, None, "a year"),
)
SECONDS_PER_YEAR = 365 * 86400


def format_size(num_bytes: int | float) -> str:
    """
    Format a byte count with binary multiples and up to two decimals.

    >>> format_size(1536)
    '1.5 KB'
    >>> format_size(0)
    '0 B'
    """
    if num_bytes < 0:
        raise ValueError("Size cannot be negative")

    value = float(num_bytes)
    unit_index = 0
    while value >= SIZE_BASE and unit_index < len(SIZE_UNITS) - 1:
        value /= SIZE_BASE
        unit_index += 1

    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[unit_index]}"


def format_duration(seconds: int | float) -> str:
    """
    Format a duration in seconds as ``m:ss``.

    Seconds are rounded; a value that rounds up to a full minute carries over.

    >>> format_duration(75.4)
    '1:15'
    >>> format_duration(59.6)
    '1:00'
    """
    if seconds < 0 or math.isnan(seconds):
        raise ValueError("Duration must be a non-negative number")

    total = _round_half_up(seconds)
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def compression_percentage(original_size: int, compressed_size: int) -> int:
    """
    Percentage saved by compression, rounded to an integer.

    Zero when the original size is unknown (0). Negative when the provider
    output is larger than the upload.
    """
    if original_size <= 0:
        return 0
    return _round_half_up((1 - compressed_size / original_size) * 100)


def _round_half_up(value: float) -> int:
    # round() is banker's rounding; 2.5 must give 3 here
    return math.floor(value + 0.5)


def format_relative_time(moment: datetime, now: datetime | None = None) -> str:
    """
    Describe ``moment`` relative to ``now``, e.g. ``'3 days ago'``.

    Naive datetimes are taken as UTC, as MongoDB returns them.

    >>> format_relative_time(datetime(2026, 1, 1, tzinfo=UTC), datetime(2026, 1, 4, tzinfo=UTC))
    '3 days ago'
    """
    now = now or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    delta = (now - moment).total_seconds()
    phrase = _relative_phrase(abs(delta))
    return f"in {phrase}" if delta < 0 else f"{phrase} ago"


def _relative_phrase(seconds: float) -> str:
    for limit, unit, text in RELATIVE_TIME_STEPS:
        if seconds < limit:
            return text if unit is None else f"{_round_half_up(seconds / unit)} {text}"
    return f"{_round_half_up(seconds / SECONDS_PER_YEAR)} years"
