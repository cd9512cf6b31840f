from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from salon_booking.application.exceptions import DuplicateInvoiceNumber, NotFound
from salon_booking.application.ports.appointment_repository import AppointmentRepositoryPort
from salon_booking.application.ports.clock import ClockPort
from salon_booking.application.use_cases.invoice_number import highest_sequence
from salon_booking.domain.entities.appointment import Appointment
from salon_booking.domain.entities.booking_request import BookingRequest
from salon_booking.domain.entities.status import AppointmentStatus
from salon_booking.infrastructure.store.memory_store import apply_status_update


class JsonAppointmentRepository(AppointmentRepositoryPort):
    """One JSON document per appointment, written atomically."""

    def __init__(self, clock: ClockPort, data_dir: str = "./data/appointments") -> None:
        self._clock = clock
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, threading.Lock] = {}
        self._lock_lock = threading.Lock()  # Lock for managing locks dict
        self._create_lock = threading.Lock()  # Serialises invoice number allocation
        self._logger = logging.getLogger(__name__)
        self._invoice_numbers = {a.invoice_number for a in self._load_all()}

    def _get_lock(self, appointment_id: str) -> threading.Lock:
        """Get or create a lock for an appointment id."""
        with self._lock_lock:
            if appointment_id not in self._locks:
                self._locks[appointment_id] = threading.Lock()
            return self._locks[appointment_id]

    def _get_file_path(self, appointment_id: str) -> Path:
        return self._data_dir / f"{appointment_id}.json"

    def create(self, request: BookingRequest, repeated_from: str | None = None) -> Appointment:
        with self._create_lock:
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
            with self._get_lock(appointment.id):
                self._save(appointment)
            self._invoice_numbers.add(appointment.invoice_number)
            return appointment

    def update_status(self, appointment_id: str, status: AppointmentStatus, metadata: dict[str, Any] | None = None) -> Appointment:
        with self._get_lock(appointment_id):
            current = self._load(appointment_id)
            if current is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            updated = apply_status_update(current, status, metadata, self._clock)
            self._save(updated)
            return updated

    def find_by_id(self, appointment_id: str) -> Appointment | None:
        with self._get_lock(appointment_id):
            return self._load(appointment_id)

    def list_appointments(self, status: AppointmentStatus | None = None) -> list[Appointment]:
        items = [a for a in self._load_all() if status is None or a.status == status]
        return sorted(items, key=lambda a: a.created_at, reverse=True)

    def find_by_customer(self, email: str) -> list[Appointment]:
        needle = email.strip().lower()
        return [a for a in self.list_appointments() if a.request.customer.email.lower() == needle]

    def max_invoice_sequence(self) -> int:
        with self._create_lock:
            return highest_sequence(self._invoice_numbers)

    def _load(self, appointment_id: str) -> Appointment | None:
        file_path = self._get_file_path(appointment_id)
        if not file_path.exists():
            return None
        with open(file_path, "r", encoding="utf-8") as f:
            return self._deserialize(json.load(f))

    def _load_all(self) -> list[Appointment]:
        appointments: list[Appointment] = []
        for file_path in sorted(self._data_dir.glob("*.json")):
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    appointments.append(self._deserialize(json.load(f)))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                self._logger.error("Skipping unreadable appointment file %s", file_path.name, extra={"reason": str(e)})
        return appointments

    def _save(self, appointment: Appointment) -> None:
        """Save appointment to JSON file atomically."""
        file_path = self._get_file_path(appointment.id)
        temp_path = file_path.with_suffix(".json.tmp")

        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self._serialize(appointment), f, indent=2, ensure_ascii=False)
            # Atomic rename
            temp_path.replace(file_path)
        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def _serialize(self, appointment: Appointment) -> dict[str, Any]:
        return {
            "id": appointment.id,
            "invoice_number": appointment.invoice_number,
            "status": appointment.status.value,
            "appointment_json": appointment.request.to_snapshot(),
            "created_at": appointment.created_at.isoformat(),
            "reject_reason": appointment.reject_reason,
            "executors": {str(k): v for k, v in appointment.executors.items()},
            "paid": appointment.paid,
            "paid_at": _iso(appointment.paid_at),
            "completed_at": _iso(appointment.completed_at),
            "repeated_from": appointment.repeated_from,
            "updated_at": _iso(appointment.updated_at),
            "version": 1,
        }

    def _deserialize(self, data: dict[str, Any]) -> Appointment:
        return Appointment(
            id=data["id"],
            invoice_number=data["invoice_number"],
            status=AppointmentStatus(data["status"]),
            request=BookingRequest.from_snapshot(data["appointment_json"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            reject_reason=data.get("reject_reason"),
            executors={int(k): v for k, v in (data.get("executors") or {}).items()},
            paid=bool(data.get("paid", False)),
            paid_at=_parse_dt(data.get("paid_at")),
            completed_at=_parse_dt(data.get("completed_at")),
            repeated_from=data.get("repeated_from"),
            updated_at=_parse_dt(data.get("updated_at")),
        )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
