from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal

from salon_booking.domain.entities.status import AppointmentStatus


def minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class TimeInterval:
    """Half-open [start, end) interval in minutes since midnight."""

    start: int
    end: int

    @staticmethod
    def from_start(start: time, duration_minutes: int) -> "TimeInterval":
        begin = minute_of_day(start)
        return TimeInterval(start=begin, end=begin + duration_minutes)

    def padded(self, minutes: int) -> "TimeInterval":
        return TimeInterval(start=self.start, end=self.end + max(minutes, 0))

    def label(self) -> str:
        return f"{self.start // 60:02d}:{self.start % 60:02d}-{self.end // 60:02d}:{self.end % 60:02d}"


@dataclass(frozen=True)
class AppointmentSegment:
    service_id: str
    service_name: str
    day: date
    start: time
    duration_minutes: int
    price: Decimal
    original_price: Decimal
    discount_percent: Decimal | None = None
    staff_id: str | None = None

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval.from_start(self.start, self.duration_minutes)


@dataclass(frozen=True)
class BookedSegment:
    appointment_id: str
    staff_id: str
    day: date
    interval: TimeInterval
    status: AppointmentStatus
    service_id: str | None = None
