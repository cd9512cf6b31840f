from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Mapping, Sequence

from salon_booking.application.ports.catalog import CatalogPort
from salon_booking.application.ports.schedule import SchedulePort
from salon_booking.application.use_cases.conflict_guard import ConflictGuard
from salon_booking.domain.entities.segment import BookedSegment, TimeInterval
from salon_booking.domain.entities.service import Service
from salon_booking.domain.entities.staff import StaffMember

NO_SPECIALISTS = "no_specialists"
DAY_OFF = "day_off"
ALL_BUSY = "all_busy"


@dataclass(frozen=True)
class AvailabilityResult:
    """Eligible and free staff for one slot, with counts for user messaging."""

    service_id: str
    staff: list[StaffMember] = field(default_factory=list)
    reason: str | None = None  # None, "no_specialists", "day_off", "all_busy"
    qualified_count: int = 0  # staff with the specialization
    working_count: int = 0  # of those, working across the whole interval

    @property
    def staff_ids(self) -> list[str]:
        return [s.id for s in self.staff]

    def offers(self, staff_id: str) -> bool:
        return staff_id in self.staff_ids


def resolve_available_staff(
    service: Service,
    day: date,
    start: time,
    roster: Sequence[StaffMember],
    segments_by_staff: Mapping[str, Sequence[BookedSegment]],
    duration_minutes: int | None = None,
    guard: ConflictGuard | None = None,
    buffer_minutes: int = 0,
    ignore_appointment_id: str | None = None,
) -> AvailabilityResult:
    """
    Capability filter, then weekday window coverage (duration-aware), then
    conflict filter. Never raises for business conditions and never mutates.
    """
    guard = guard or ConflictGuard()
    duration = duration_minutes if duration_minutes is not None else service.duration_minutes
    interval = TimeInterval.from_start(start, duration)

    qualified = [member for member in roster if member.can_perform(service.id)]
    if not qualified:
        return AvailabilityResult(service_id=service.id, reason=NO_SPECIALISTS)

    working = []
    for member in qualified:
        window = member.window_for(day)
        if window is not None and window.covers(interval.start, interval.end):
            working.append(member)
    if not working:
        return AvailabilityResult(
            service_id=service.id,
            reason=DAY_OFF,
            qualified_count=len(qualified),
        )

    padded = interval.padded(buffer_minutes)
    free = [
        member
        for member in working
        if not guard.has_conflict(
            padded,
            segments_by_staff.get(member.id, ()),
            ignore_appointment_id=ignore_appointment_id,
        )
    ]
    free.sort(key=lambda m: (m.name.lower(), m.id))

    return AvailabilityResult(
        service_id=service.id,
        staff=free,
        reason=None if free else ALL_BUSY,
        qualified_count=len(qualified),
        working_count=len(working),
    )


class AvailabilityResolver:
    def __init__(
        self,
        catalog: CatalogPort,
        schedule: SchedulePort,
        guard: ConflictGuard | None = None,
        buffer_minutes: int = 0,
    ) -> None:
        self._catalog = catalog
        self._schedule = schedule
        self._guard = guard or ConflictGuard()
        self._buffer_minutes = buffer_minutes
        self._logger = logging.getLogger(__name__)

    def resolve(
        self,
        service_id: str,
        day: date,
        start: time,
        duration_minutes: int | None = None,
    ) -> AvailabilityResult:
        service = self._catalog.get_service(service_id)
        if service is None:
            self._logger.warning("Availability requested for unknown service", extra={"service": service_id})
            return AvailabilityResult(service_id=service_id, reason=NO_SPECIALISTS)
        return self.resolve_for_service(service, day, start, duration_minutes)

    def resolve_for_service(
        self,
        service: Service,
        day: date,
        start: time,
        duration_minutes: int | None = None,
    ) -> AvailabilityResult:
        roster = self._catalog.list_staff()
        segments_by_staff = {
            member.id: self._schedule.segments_for(member.id, day)
            for member in roster
            if member.can_perform(service.id)
        }
        result = resolve_available_staff(
            service=service,
            day=day,
            start=start,
            roster=roster,
            segments_by_staff=segments_by_staff,
            duration_minutes=duration_minutes,
            guard=self._guard,
            buffer_minutes=self._buffer_minutes,
        )
        self._logger.debug(
            "Availability resolved",
            extra={"service": service.id, "reason": result.reason, "staff_id": ",".join(result.staff_ids)},
        )
        return result
