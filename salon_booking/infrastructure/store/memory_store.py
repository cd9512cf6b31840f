from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import date
from typing import Any

from salon_booking.application.exceptions import DuplicateInvoiceNumber, NotFound, SchedulingConflict
from salon_booking.application.ports.appointment_repository import AppointmentRepositoryPort
from salon_booking.application.ports.clock import ClockPort
from salon_booking.application.ports.schedule import SchedulePort
from salon_booking.application.use_cases.conflict_guard import intervals_overlap
from salon_booking.application.use_cases.invoice_number import highest_sequence
from salon_booking.domain.entities.appointment import Appointment
from salon_booking.domain.entities.booking_request import BookingRequest
from salon_booking.domain.entities.segment import BookedSegment
from salon_booking.domain.entities.status import CLAIMING_STATUSES, AppointmentStatus

MUTABLE_FIELDS = ("reject_reason", "executors", "paid", "paid_at", "completed_at")


def apply_status_update(
    appointment: Appointment,
    status: AppointmentStatus,
    metadata: dict[str, Any] | None,
    clock: ClockPort,
) -> Appointment:
    """Only status and the metadata fields may change; the request snapshot never does."""
    changes: dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if key not in MUTABLE_FIELDS:
            raise ValueError(f"Field {key} cannot be updated")
        changes[key] = dict(value) if key == "executors" else value
    return replace(appointment, status=status, updated_at=clock.now(), **changes)


class MemorySchedule(SchedulePort):
    def __init__(self) -> None:
        self._segments: dict[tuple[str, date], list[BookedSegment]] = {}
        self._lock = threading.Lock()

    def segments_for(self, staff_id: str, day: date) -> list[BookedSegment]:
        with self._lock:
            return list(self._segments.get((staff_id, day), []))

    def insert_segment(self, segment: BookedSegment) -> None:
        with self._lock:
            bucket = self._segments.setdefault((segment.staff_id, segment.day), [])
            if segment.status in CLAIMING_STATUSES:
                for other in bucket:
                    if (
                        other.status in CLAIMING_STATUSES
                        and other.appointment_id != segment.appointment_id
                        and intervals_overlap(other.interval, segment.interval)
                    ):
                        raise SchedulingConflict(
                            f"Staff {segment.staff_id} already booked {other.interval.label()} on {segment.day.isoformat()}",
                            [{"staff_id": segment.staff_id, "conflicts_with": other.appointment_id}],
                        )
            bucket.append(segment)

    def set_status(self, appointment_id: str, status: AppointmentStatus) -> None:
        with self._lock:
            for key, bucket in self._segments.items():
                self._segments[key] = [
                    replace(s, status=status) if s.appointment_id == appointment_id else s for s in bucket
                ]

    def remove_segments(self, appointment_id: str, status: AppointmentStatus | None = None) -> int:
        removed = 0
        with self._lock:
            for key, bucket in self._segments.items():
                kept = [
                    s for s in bucket
                    if not (s.appointment_id == appointment_id and (status is None or s.status == status))
                ]
                removed += len(bucket) - len(kept)
                self._segments[key] = kept
        return removed


class MemoryAppointmentRepository(AppointmentRepositoryPort):
    def __init__(self, clock: ClockPort) -> None:
        self._clock = clock
        self._appointments: dict[str, Appointment] = {}
        self._invoice_numbers: set[str] = set()
        self._lock = threading.Lock()

    def create(self, request: BookingRequest, repeated_from: str | None = None) -> Appointment:
        with self._lock:
            if request.invoice_number in self._invoice_numbers:
                raise DuplicateInvoiceNumber(f"Invoice number {request.invoice_number} already exists")
            appointment = Appointment(
                id=uuid.uuid4().hex,
                invoice_number=request.invoice_number,
                status=AppointmentStatus.pending,
                request=request,
                created_at=self._clock.now(),
                repeated_from=repeated_from,
            )
            self._appointments[appointment.id] = appointment
            self._invoice_numbers.add(request.invoice_number)
            return appointment

    def update_status(self, appointment_id: str, status: AppointmentStatus, metadata: dict[str, Any] | None = None) -> Appointment:
        with self._lock:
            current = self._appointments.get(appointment_id)
            if current is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            updated = apply_status_update(current, status, metadata, self._clock)
            self._appointments[appointment_id] = updated
            return updated

    def find_by_id(self, appointment_id: str) -> Appointment | None:
        return self._appointments.get(appointment_id)

    def list_appointments(self, status: AppointmentStatus | None = None) -> list[Appointment]:
        items = [a for a in self._appointments.values() if status is None or a.status == status]
        return sorted(items, key=lambda a: a.created_at, reverse=True)

    def find_by_customer(self, email: str) -> list[Appointment]:
        needle = email.strip().lower()
        return [a for a in self.list_appointments() if a.request.customer.email.lower() == needle]

    def max_invoice_sequence(self) -> int:
        with self._lock:
            return highest_sequence(self._invoice_numbers)
