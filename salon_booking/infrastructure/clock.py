from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from salon_booking.application.ports.clock import ClockPort


class SystemClock(ClockPort):
    def __init__(self, timezone: str = "UTC") -> None:
        self._tz = _safe_timezone(timezone)

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock(ClockPort):
    """Deterministic clock for tests and replays."""

    def __init__(self, moment: datetime) -> None:
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = moment


def _safe_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except Exception:
        return ZoneInfo("UTC")
