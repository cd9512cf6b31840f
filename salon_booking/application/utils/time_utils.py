from __future__ import annotations

import math
from datetime import time


def parse_time(value: str | time | None) -> time | None:
    """Parse "HH:MM" (or "HH:MM:SS"). Returns None if missing or malformed."""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return time.fromisoformat(text)
    except ValueError:
        return None


def minutes_to_time(minutes: int) -> time:
    """Clamp past-midnight values to 23:59 so end-of-day math never wraps."""
    minutes = min(max(minutes, 0), 24 * 60 - 1)
    return time(hour=minutes // 60, minute=minutes % 60)


def total_duration(durations: list[int], buffer_percent: float = 5.0) -> int:
    """Sum of service durations plus the cleanup buffer, rounded up to whole minutes."""
    total = sum(max(d, 0) for d in durations)
    if total == 0:
        return 0
    return math.ceil(total * (1 + buffer_percent / 100))


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h {remaining}m"
