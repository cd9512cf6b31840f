from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, Field

from salon_booking.application.utils.time_utils import format_duration
from salon_booking.domain.entities.appointment import Appointment


class StaffSchema(BaseModel):
    id: str
    name: str
    position: str = ""


class AvailabilityResponseSchema(BaseModel):
    service_id: str
    date: dt.date
    time: str
    staff: list[StaffSchema]
    reason: str | None = None
    qualified_count: int
    working_count: int


class CustomerSchema(BaseModel):
    full_name: str
    gender: str | None = None
    email: str
    phone: str
    note: str = ""
    customer_id: str | None = None


class ServiceSelectionSchema(BaseModel):
    service_id: str
    staff_id: str | None = None


class ProductSelectionSchema(BaseModel):
    product_id: str
    quantity: int = 1


class RequestInfoSchema(BaseModel):
    ip: str = "unknown"
    device: str = "unknown"
    os: str = "unknown"
    browser: str = "unknown"
    entry_time: str | None = None
    page: str = "booking"


class BookingCreateSchema(BaseModel):
    customer: CustomerSchema
    date: dt.date
    time: str
    services: list[ServiceSelectionSchema] = Field(min_length=1)
    products: list[ProductSelectionSchema] = Field(default_factory=list)
    payment_method: str
    request_info: RequestInfoSchema | None = None


class AcceptRequestSchema(BaseModel):
    # segment index -> staff id; omitted segments keep the customer's choice
    staff_assignments: dict[int, str] = Field(default_factory=dict)


class RepeatRequestSchema(BaseModel):
    # all optional; omitted fields keep the original slot and staff
    date: dt.date | None = None
    time: str | None = None
    staff_assignments: dict[int, str] = Field(default_factory=dict)


class RejectRequestSchema(BaseModel):
    reason: str


class AppointmentSchema(BaseModel):
    id: str
    invoice_number: str
    status: str
    created_at: dt.datetime
    total_amount: str
    original_amount: str
    savings: str
    duration: str
    paid: bool
    paid_at: dt.datetime | None = None
    completed_at: dt.datetime | None = None
    reject_reason: str | None = None
    executors: dict[str, str] = Field(default_factory=dict)
    repeated_from: str | None = None
    appointment_json: dict[str, Any]

    @staticmethod
    def from_entity(appointment: Appointment) -> "AppointmentSchema":
        totals = appointment.request.totals
        return AppointmentSchema(
            id=appointment.id,
            invoice_number=appointment.invoice_number,
            status=appointment.status.value,
            created_at=appointment.created_at,
            total_amount=str(totals.discounted),
            original_amount=str(totals.original),
            savings=str(totals.savings),
            duration=format_duration(sum(s.duration_minutes for s in appointment.request.segments)),
            paid=appointment.paid,
            paid_at=appointment.paid_at,
            completed_at=appointment.completed_at,
            reject_reason=appointment.reject_reason,
            executors={str(k): v for k, v in appointment.executors.items()},
            repeated_from=appointment.repeated_from,
            appointment_json=appointment.request.to_snapshot(),
        )
