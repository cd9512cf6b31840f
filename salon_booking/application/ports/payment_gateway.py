from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from salon_booking.domain.entities.payment import PaymentRecord


class PaymentGatewayPort(ABC):
    @abstractmethod
    def create_pending_payment(self, appointment_id: str, amount: Decimal, method: str) -> PaymentRecord:
        raise NotImplementedError

    @abstractmethod
    def settle_payment(self, appointment_id: str) -> PaymentRecord:
        raise NotImplementedError

    @abstractmethod
    def void_payment(self, appointment_id: str) -> None:
        """Undo a pending payment created by a transition that later failed."""
        raise NotImplementedError
