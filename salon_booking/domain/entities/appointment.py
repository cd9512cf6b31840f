from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from salon_booking.domain.entities.booking_request import BookingRequest
from salon_booking.domain.entities.status import AppointmentStatus


@dataclass(frozen=True)
class Appointment:
    id: str
    invoice_number: str
    status: AppointmentStatus
    request: BookingRequest  # frozen at creation
    created_at: datetime
    reject_reason: str | None = None
    # segment index -> staff id, set on accept
    executors: dict[int, str] = field(default_factory=dict)
    paid: bool = False
    paid_at: datetime | None = None
    completed_at: datetime | None = None
    repeated_from: str | None = None
    updated_at: datetime | None = None

    @property
    def total_amount(self) -> Decimal:
        return self.request.totals.discounted

    def staff_for_segment(self, index: int) -> str | None:
        return self.executors.get(index) or self.request.segments[index].staff_id
