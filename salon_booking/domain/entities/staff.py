from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from typing import Any

WEEKDAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@dataclass(frozen=True)
class AvailabilityWindow:
    start: time
    end: time

    @property
    def start_minute(self) -> int:
        return self.start.hour * 60 + self.start.minute

    @property
    def end_minute(self) -> int:
        return self.end.hour * 60 + self.end.minute

    def covers(self, start_minute: int, end_minute: int) -> bool:
        return self.start_minute <= start_minute and end_minute <= self.end_minute


@dataclass(frozen=True)
class StaffMember:
    id: str
    name: str
    position: str = ""
    specializations: tuple[str, ...] = ()
    # weekday (0 = Monday) -> window; a missing weekday is a day off
    weekly_availability: dict[int, AvailabilityWindow] = field(default_factory=dict)

    def can_perform(self, service_id: str) -> bool:
        return service_id in self.specializations

    def window_for(self, day: date) -> AvailabilityWindow | None:
        return self.weekly_availability.get(day.weekday())

    @staticmethod
    def from_payload(payload: dict[str, Any]) -> "StaffMember":
        return StaffMember(
            id=str(payload["id"]),
            name=(payload.get("name") or payload.get("full_name") or "").strip(),
            position=(payload.get("position") or "").strip(),
            specializations=tuple(str(s) for s in (payload.get("specializations") or [])),
            weekly_availability=_parse_schedule(payload.get("working_hours") or {}),
        )


def _parse_schedule(schedule: dict[str, Any]) -> dict[int, AvailabilityWindow]:
    """
    Accepts named keys ("mon": {"start": "09:00", "end": "17:00"}) or
    numeric weekday keys ("0": {...}). Null entries mean day off.
    """
    windows: dict[int, AvailabilityWindow] = {}
    for key, value in schedule.items():
        if not value:
            continue
        key_str = str(key).strip().lower()[:3]
        if key_str.isdigit():
            weekday = int(key_str)
        elif key_str in WEEKDAY_NAMES:
            weekday = WEEKDAY_NAMES.index(key_str)
        else:
            continue
        start, end = value.get("start"), value.get("end")
        if not (start and end):
            continue
        windows[weekday] = AvailabilityWindow(start=time.fromisoformat(start), end=time.fromisoformat(end))
    return windows
