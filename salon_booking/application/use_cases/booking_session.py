from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time, timedelta
from enum import IntEnum

from salon_booking.application.exceptions import ValidationError
from salon_booking.application.ports.catalog import CatalogPort
from salon_booking.application.ports.clock import ClockPort
from salon_booking.application.use_cases.availability import AvailabilityResolver, AvailabilityResult
from salon_booking.application.use_cases.invoice_number import InvoiceNumberGenerator
from salon_booking.application.utils.pricing import discounted_price, line_total, round_money
from salon_booking.application.utils.time_utils import minutes_to_time, parse_time, total_duration
from salon_booking.application.utils.validators import full_name_error, is_valid_email, normalize_gender
from salon_booking.domain.entities.booking_request import (
    PAYMENT_METHODS,
    BookingRequest,
    CustomerInfo,
    PriceTotals,
    ProductLine,
    RequestInfo,
)
from salon_booking.domain.entities.segment import AppointmentSegment, minute_of_day
from salon_booking.domain.entities.service import Service


class BookingStep(IntEnum):
    CUSTOMER_INFO = 1
    SERVICE_SELECTION = 2
    PRODUCT_SELECTION = 3
    PAYMENT = 4
    CONFIRMATION = 5


@dataclass(frozen=True)
class BookingRules:
    max_booking_days: int = 7
    working_hours_start: time = time(9, 0)
    working_hours_end: time = time(18, 0)
    cleanup_buffer_percent: float = 5.0


class BookingSessionBuilder:
    """
    In-memory checkout session. Moves forward one step at a time after the
    current step validates; moves backward freely. Persists nothing:
    abandoning a session has no side effects.
    """

    def __init__(
        self,
        catalog: CatalogPort,
        resolver: AvailabilityResolver,
        invoice_numbers: InvoiceNumberGenerator,
        clock: ClockPort,
        rules: BookingRules | None = None,
    ) -> None:
        self._catalog = catalog
        self._resolver = resolver
        self._invoice_numbers = invoice_numbers
        self._clock = clock
        self._rules = rules or BookingRules()
        self._logger = logging.getLogger(__name__)

        self._step = BookingStep.CUSTOMER_INFO
        self._full_name = ""
        self._gender: str | None = None
        self._email = ""
        self._phone = ""
        self._note = ""
        self._customer_id: str | None = None
        self._day: date | None = None
        self._start: time | None = None
        self._request_info = RequestInfo()

        self._services: list[Service] = []
        self._staff: dict[str, str] = {}  # service_id -> staff_id
        self._products: dict[str, int] = {}  # product_id -> quantity, insertion ordered
        self._payment_method: str | None = None
        self._request: BookingRequest | None = None

    # ── Step navigation ──────────────────────────────────────────────────

    @property
    def step(self) -> BookingStep:
        return self._step

    @property
    def request(self) -> BookingRequest | None:
        """The frozen request, available once the session reached CONFIRMATION."""
        return self._request

    def next_step(self) -> BookingStep:
        if self._step == BookingStep.CONFIRMATION:
            return self._step

        errors = self.validate(self._step)
        if errors:
            self._logger.info("Booking step rejected", extra={"reason": ",".join(sorted(errors))})
            raise ValidationError(errors)

        if self._step == BookingStep.PAYMENT:
            self._request = self._freeze()

        self._step = BookingStep(self._step + 1)
        return self._step

    def back(self) -> BookingStep:
        if self._step > BookingStep.CUSTOMER_INFO:
            self.go_to(BookingStep(self._step - 1))
        return self._step

    def go_to(self, step: BookingStep) -> BookingStep:
        """Backward jumps only; forward movement must go through next_step()."""
        if step > self._step:
            raise ValidationError({"step": "Complete the current step before moving forward"})
        self._step = step
        if step < BookingStep.CONFIRMATION:
            self._request = None
        return self._step

    def confirm(self) -> BookingRequest:
        """Advance through any remaining steps and return the frozen request."""
        while self._step < BookingStep.CONFIRMATION:
            self.next_step()
        if self._request is None:
            raise ValidationError({"step": "Booking request is not frozen yet"})
        return self._request

    # ── Step 1: customer info ────────────────────────────────────────────

    def set_customer_info(
        self,
        full_name: str,
        gender: str | None,
        email: str,
        phone: str,
        day: date | str | None,
        start: time | str | None,
        note: str = "",
        customer_id: str | None = None,
    ) -> None:
        self._full_name = (full_name or "").strip()
        self._gender = normalize_gender(gender)
        self._email = (email or "").strip()
        self._phone = (phone or "").strip()
        self._note = (note or "").strip()
        self._customer_id = customer_id
        self._day = _parse_day(day)
        self._start = parse_time(start)

    def set_request_info(self, request_info: RequestInfo) -> None:
        self._request_info = request_info

    # ── Step 2: services and staff ───────────────────────────────────────

    def add_service(self, service_id: str) -> Service:
        service = self._catalog.get_service(service_id)
        if service is None:
            raise ValidationError({"services": f"Unknown service {service_id}"})
        if all(s.id != service.id for s in self._services):
            self._services.append(service)
        return service

    def remove_service(self, service_id: str) -> None:
        self._services = [s for s in self._services if s.id != service_id]
        self._staff.pop(service_id, None)

    def staff_options(self, service_id: str) -> AvailabilityResult:
        """Staff eligible and free for the service at its place in the chain."""
        segment = self._segment_for(service_id)
        if segment is None:
            return AvailabilityResult(service_id=service_id)
        return self._resolver.resolve_for_service(
            self._service(service_id),
            segment.day,
            segment.start,
            segment.duration_minutes,
        )

    def assign_staff(self, service_id: str, staff_id: str) -> None:
        if all(s.id != service_id for s in self._services):
            raise ValidationError({f"staff.{service_id}": "Service is not selected"})
        self._staff[service_id] = staff_id

    # ── Step 3: products ─────────────────────────────────────────────────

    def set_product(self, product_id: str, quantity: int) -> None:
        """Quantity 0 removes the product. Stock is not touched here."""
        if quantity <= 0:
            self._products.pop(product_id, None)
            return
        if self._catalog.get_product(product_id) is None:
            raise ValidationError({f"products.{product_id}": "Unknown product"})
        self._products[product_id] = quantity

    # ── Step 4: payment ──────────────────────────────────────────────────

    def set_payment_method(self, method: str | None) -> None:
        self._payment_method = (method or "").strip().lower() or None

    # ── Derived data ─────────────────────────────────────────────────────

    def segments(self) -> list[AppointmentSegment]:
        """Selected services chained back to back from the requested time."""
        if self._day is None or self._start is None:
            return []
        segments: list[AppointmentSegment] = []
        cursor = minute_of_day(self._start)
        for service in self._services:
            segments.append(
                AppointmentSegment(
                    service_id=service.id,
                    service_name=service.name,
                    day=self._day,
                    start=minutes_to_time(cursor),
                    duration_minutes=service.duration_minutes,
                    price=round_money(discounted_price(service.price, service.discount_percent)),
                    original_price=service.price,
                    discount_percent=service.discount_percent,
                    staff_id=self._staff.get(service.id),
                )
            )
            cursor += service.duration_minutes
        return segments

    def product_lines(self) -> list[ProductLine]:
        lines: list[ProductLine] = []
        for product_id, quantity in self._products.items():
            product = self._catalog.get_product(product_id)
            if product is None:
                continue
            lines.append(
                ProductLine(
                    product_id=product.id,
                    name=product.name,
                    price=product.price,
                    quantity=quantity,
                    discount_percent=product.discount_percent,
                )
            )
        return lines

    def totals(self) -> PriceTotals:
        """Running totals, always recomputed from catalog data."""
        services = [
            ProductLine(
                product_id=s.id,
                name=s.name,
                price=s.price,
                quantity=1,
                discount_percent=s.discount_percent,
            )
            for s in self._services
        ]
        return line_total([*services, *self.product_lines()])

    # ── Validation ───────────────────────────────────────────────────────

    def validate(self, step: BookingStep | None = None) -> dict[str, str]:
        step = step or self._step
        if step == BookingStep.CUSTOMER_INFO:
            return self._validate_customer_info()
        if step == BookingStep.SERVICE_SELECTION:
            return self._validate_services()
        if step == BookingStep.PRODUCT_SELECTION:
            return self._validate_products()
        if step == BookingStep.PAYMENT:
            return self._validate_payment()
        return {}

    def _validate_customer_info(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        name_error = full_name_error(self._full_name)
        if name_error:
            errors["full_name"] = name_error
        if not is_valid_email(self._email):
            errors["email"] = "A valid email address is required"
        if not self._phone:
            errors["phone"] = "Phone number is required"
        if not self._gender:
            errors["gender"] = "Gender is required"

        today = self._clock.today()
        last_day = today + timedelta(days=self._rules.max_booking_days)
        if self._day is None:
            errors["date"] = "Date is required"
        elif not today <= self._day <= last_day:
            errors["date"] = f"Date must be between {today.isoformat()} and {last_day.isoformat()}"

        if self._start is None:
            errors["time"] = "Time is required"
        elif not self._rules.working_hours_start <= self._start <= self._rules.working_hours_end:
            errors["time"] = (
                f"Time must be within working hours "
                f"{self._rules.working_hours_start:%H:%M}-{self._rules.working_hours_end:%H:%M}"
            )
        return errors

    def _validate_services(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        if not self._services:
            return {"services": "Select at least one service"}

        for service in self._services:
            key = f"staff.{service.id}"
            staff_id = self._staff.get(service.id)
            if not staff_id:
                errors[key] = f"Choose a staff member for {service.name}"
                continue
            if not self.staff_options(service.id).offers(staff_id):
                errors[key] = f"Selected staff member is not available for {service.name}"

        if self._start is not None:
            padded = total_duration(
                [s.duration_minutes for s in self._services],
                self._rules.cleanup_buffer_percent,
            )
            if minute_of_day(self._start) + padded > minute_of_day(self._rules.working_hours_end):
                errors["services"] = "Selected services do not fit before closing time"
        return errors

    def _validate_products(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        for product_id, quantity in self._products.items():
            product = self._catalog.get_product(product_id)
            key = f"products.{product_id}"
            if product is None:
                errors[key] = "Unknown product"
            elif quantity > product.stock_quantity:
                errors[key] = f"Only {product.stock_quantity} of {product.name} in stock"
        return errors

    def _validate_payment(self) -> dict[str, str]:
        if self._payment_method not in PAYMENT_METHODS:
            return {"payment_method": f"Choose a payment method: {', '.join(PAYMENT_METHODS)}"}
        return {}

    def _freeze(self) -> BookingRequest:
        errors: dict[str, str] = {}
        for step in (BookingStep.CUSTOMER_INFO, BookingStep.SERVICE_SELECTION, BookingStep.PRODUCT_SELECTION):
            errors.update(self.validate(step))
        if errors:
            raise ValidationError(errors)

        request = BookingRequest(
            customer=CustomerInfo(
                full_name=self._full_name,
                gender=self._gender,
                email=self._email,
                phone=self._phone,
                note=self._note,
                customer_id=self._customer_id,
            ),
            day=self._day,
            start=self._start,
            segments=tuple(self.segments()),
            products=tuple(self.product_lines()),
            payment_method=self._payment_method or "",
            totals=self.totals(),
            invoice_number=self._invoice_numbers.generate(),
            request_info=self._request_info,
        )
        self._logger.info(
            "Booking request frozen with %d segments",
            len(request.segments),
            extra={"invoice_number": request.invoice_number},
        )
        return request

    # ── Helpers ──────────────────────────────────────────────────────────

    def _service(self, service_id: str) -> Service:
        for service in self._services:
            if service.id == service_id:
                return service
        raise ValidationError({"services": f"Service {service_id} is not selected"})

    def _segment_for(self, service_id: str) -> AppointmentSegment | None:
        for segment in self.segments():
            if segment.service_id == service_id:
                return segment
        return None


def _parse_day(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        return None
