from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from salon_booking.domain.entities.appointment import Appointment
from salon_booking.domain.entities.booking_request import BookingRequest
from salon_booking.domain.entities.status import AppointmentStatus


class AppointmentRepositoryPort(ABC):
    @abstractmethod
    def create(self, request: BookingRequest, repeated_from: str | None = None) -> Appointment:
        """
        Persist a new pending appointment for the request.
        Raises DuplicateInvoiceNumber if the invoice number is taken.
        """
        raise NotImplementedError

    @abstractmethod
    def update_status(self, appointment_id: str, status: AppointmentStatus, metadata: dict[str, Any] | None = None) -> Appointment:
        """
        Set the status and the mutable metadata fields
        (reject_reason, executors, paid, paid_at, completed_at).
        """
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, appointment_id: str) -> Appointment | None:
        raise NotImplementedError

    @abstractmethod
    def list_appointments(self, status: AppointmentStatus | None = None) -> list[Appointment]:
        raise NotImplementedError

    @abstractmethod
    def find_by_customer(self, email: str) -> list[Appointment]:
        """Order history for a customer email, newest first."""
        raise NotImplementedError

    @abstractmethod
    def max_invoice_sequence(self) -> int:
        """Highest INV-NNNNNN sequence number stored, 0 if none."""
        raise NotImplementedError
