from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from salon_booking.domain.entities.segment import BookedSegment
from salon_booking.domain.entities.status import AppointmentStatus


class SchedulePort(ABC):
    @abstractmethod
    def segments_for(self, staff_id: str, day: date) -> list[BookedSegment]:
        """All segments recorded for a staff member on a day, any status."""
        raise NotImplementedError

    @abstractmethod
    def insert_segment(self, segment: BookedSegment) -> None:
        """
        Record a segment. For claiming statuses this is a conditional write:
        raises SchedulingConflict if an overlapping claimed segment of another
        appointment already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def set_status(self, appointment_id: str, status: AppointmentStatus) -> None:
        """Update the status of every segment of an appointment."""
        raise NotImplementedError

    @abstractmethod
    def remove_segments(self, appointment_id: str, status: AppointmentStatus | None = None) -> int:
        """Remove an appointment's segments (optionally only those in status). Returns count removed."""
        raise NotImplementedError
