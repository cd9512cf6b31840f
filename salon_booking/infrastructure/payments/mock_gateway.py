from __future__ import annotations

import logging
import threading
from dataclasses import replace
from decimal import Decimal

from salon_booking.application.exceptions import NotFound
from salon_booking.application.ports.clock import ClockPort
from salon_booking.application.ports.payment_gateway import PaymentGatewayPort
from salon_booking.domain.entities.payment import PaymentRecord


class MockPaymentGateway(PaymentGatewayPort):
    """Keeps payment records in memory and logs every call."""

    def __init__(self, clock: ClockPort) -> None:
        self._clock = clock
        self._payments: dict[str, PaymentRecord] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def create_pending_payment(self, appointment_id: str, amount: Decimal, method: str) -> PaymentRecord:
        with self._lock:
            existing = self._payments.get(appointment_id)
            if existing is not None and existing.status == "settled":
                return existing
            record = PaymentRecord(
                appointment_id=appointment_id,
                amount=amount,
                method=method,
                status="pending",
                created_at=self._clock.now(),
            )
            self._payments[appointment_id] = record
        self._logger.info(
            "Mock pending payment created",
            extra={"appointment_id": appointment_id, "reason": f"{method} {amount}"},
        )
        return record

    def settle_payment(self, appointment_id: str) -> PaymentRecord:
        with self._lock:
            record = self._payments.get(appointment_id)
            if record is None or record.status == "void":
                raise NotFound(f"No pending payment for appointment {appointment_id}")
            if record.status != "settled":
                record = replace(record, status="settled", settled_at=self._clock.now())
                self._payments[appointment_id] = record
        self._logger.info("Mock payment settled", extra={"appointment_id": appointment_id})
        return record

    def void_payment(self, appointment_id: str) -> None:
        with self._lock:
            record = self._payments.get(appointment_id)
            if record is not None and record.status == "pending":
                self._payments[appointment_id] = replace(record, status="void")
        self._logger.info("Mock payment voided", extra={"appointment_id": appointment_id})

    def get_payment(self, appointment_id: str) -> PaymentRecord | None:
        return self._payments.get(appointment_id)
