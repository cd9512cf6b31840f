from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import replace
from datetime import date, time

from salon_booking.application.exceptions import (
    BookingError,
    DuplicateInvoiceNumber,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    SchedulingConflict,
    ValidationError,
)
from salon_booking.application.ports.appointment_repository import AppointmentRepositoryPort
from salon_booking.application.ports.catalog import CatalogPort
from salon_booking.application.ports.clock import ClockPort
from salon_booking.application.ports.inventory import InventoryPort
from salon_booking.application.ports.payment_gateway import PaymentGatewayPort
from salon_booking.application.ports.schedule import SchedulePort
from salon_booking.application.use_cases.conflict_guard import ConflictGuard, intervals_overlap
from salon_booking.application.use_cases.invoice_number import InvoiceNumberGenerator
from salon_booking.application.utils.pricing import discounted_price, line_total, round_money
from salon_booking.application.utils.time_utils import minutes_to_time
from salon_booking.domain.entities.appointment import Appointment
from salon_booking.domain.entities.booking_request import BookingRequest
from salon_booking.domain.entities.segment import BookedSegment, minute_of_day
from salon_booking.domain.entities.status import ALLOWED_TRANSITIONS, CLAIMING_STATUSES, AppointmentStatus


class AppointmentLifecycle:
    """
    pending -> confirmed -> completed, pending -> rejected.

    Every transition runs its side effects before flipping the status and
    undoes them if a later step fails, so a failed call leaves the
    appointment exactly as it was.
    """

    def __init__(
        self,
        repository: AppointmentRepositoryPort,
        schedule: SchedulePort,
        payments: PaymentGatewayPort,
        inventory: InventoryPort,
        catalog: CatalogPort,
        invoice_numbers: InvoiceNumberGenerator,
        clock: ClockPort,
        guard: ConflictGuard | None = None,
        max_invoice_attempts: int = 3,
        conflict_buffer_minutes: int = 0,
    ) -> None:
        self._repository = repository
        self._schedule = schedule
        self._payments = payments
        self._inventory = inventory
        self._catalog = catalog
        self._invoice_numbers = invoice_numbers
        self._clock = clock
        self._guard = guard or ConflictGuard()
        self._max_invoice_attempts = max(max_invoice_attempts, 1)
        self._conflict_buffer_minutes = conflict_buffer_minutes
        self._logger = logging.getLogger(__name__)

    # ── Creation ─────────────────────────────────────────────────────────

    def submit(self, request: BookingRequest) -> Appointment:
        if not request.is_fully_staffed:
            raise ValidationError({"services": "Every service needs a staff member before submission"})
        request = self._recompute(request)
        appointment = self._create(request)
        self._record_holds(appointment)
        self._logger.info(
            "Appointment submitted",
            extra={"appointment_id": appointment.id, "invoice_number": appointment.invoice_number, "status": appointment.status.value},
        )
        return appointment

    def repeat(
        self,
        appointment_id: str,
        day: date | None = None,
        start: time | None = None,
        staff_assignments: dict[int, str] | None = None,
    ) -> Appointment:
        """
        Clone a terminal appointment's selections into a new pending appointment.

        With a new day or start the services are re-chained from that time;
        staff_assignments (segment index -> staff id) replace the original choices.
        Without them the clone keeps the original slot, which a completed
        source still occupies.
        """
        original = self._load(appointment_id)
        if not original.status.is_terminal:
            raise InvalidTransition(f"Only completed or rejected appointments can be repeated (status={original.status.value})")

        request = replace(original.request, invoice_number=self._invoice_numbers.generate())
        if day or start or staff_assignments:
            request = self._reschedule(request, day or request.day, start or request.start, staff_assignments or {})
        appointment = self._create(self._recompute(request), repeated_from=original.id)
        self._record_holds(appointment)
        self._logger.info(
            "Appointment repeated",
            extra={"appointment_id": appointment.id, "invoice_number": appointment.invoice_number, "reason": f"from {original.id}"},
        )
        return appointment

    # ── Transitions ──────────────────────────────────────────────────────

    def accept(self, appointment_id: str, staff_assignments: dict[int, str] | None = None) -> Appointment:
        appointment = self._load(appointment_id)
        self._require_transition(appointment, AppointmentStatus.confirmed)

        segments = appointment.request.segments
        assignments: dict[int, str] = {}
        missing: dict[str, str] = {}
        for index, segment in enumerate(segments):
            staff_id = (staff_assignments or {}).get(index) or segment.staff_id
            if not staff_id:
                missing[f"segments.{index}"] = f"No staff assigned for {segment.service_name}"
            else:
                assignments[index] = staff_id
        if missing or not segments:
            raise ValidationError(missing or {"segments": "Appointment has no segments"})
        unfit = self._staff_errors(segments, assignments)
        if unfit:
            raise ValidationError(unfit)

        claimed = [
            BookedSegment(
                appointment_id=appointment.id,
                staff_id=assignments[index],
                day=segment.day,
                interval=segment.interval.padded(self._conflict_buffer_minutes),
                status=AppointmentStatus.confirmed,
                service_id=segment.service_id,
            )
            for index, segment in enumerate(segments)
        ]

        with self._guard.slot_lock((c.staff_id, c.day) for c in claimed):
            self._check_claims(appointment, claimed)

            inserted = False
            payment_created = False
            try:
                for segment in claimed:
                    inserted = True
                    self._schedule.insert_segment(segment)
                self._payments.create_pending_payment(
                    appointment.id,
                    appointment.total_amount,
                    appointment.request.payment_method,
                )
                payment_created = True
                updated = self._repository.update_status(
                    appointment.id,
                    AppointmentStatus.confirmed,
                    {"executors": assignments},
                )
            except BookingError:
                self._undo_accept(appointment, inserted, payment_created)
                raise
            except Exception as exc:
                self._undo_accept(appointment, inserted, payment_created)
                raise PersistenceFailure(f"Accept failed for appointment {appointment.id}") from exc
            except BaseException:
                self._undo_accept(appointment, inserted, payment_created)
                raise

        self._release_holds(appointment.id)
        self._logger.info(
            "Appointment accepted",
            extra={"appointment_id": appointment.id, "staff_id": ",".join(sorted(set(assignments.values()))), "status": "confirmed"},
        )
        return updated

    def reject(self, appointment_id: str, reason: str) -> Appointment:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError({"reason": "A rejection reason is required"})

        appointment = self._load(appointment_id)
        self._require_transition(appointment, AppointmentStatus.rejected)

        self._call(self._schedule.set_status, appointment.id, AppointmentStatus.rejected)
        try:
            updated = self._repository.update_status(
                appointment.id,
                AppointmentStatus.rejected,
                {"reject_reason": reason},
            )
        except BaseException as exc:
            self._schedule.set_status(appointment.id, AppointmentStatus.pending)
            if isinstance(exc, Exception) and not isinstance(exc, BookingError):
                raise PersistenceFailure(f"Reject failed for appointment {appointment.id}") from exc
            raise

        self._logger.info("Appointment rejected", extra={"appointment_id": appointment.id, "reason": reason, "status": "rejected"})
        return updated

    def complete(self, appointment_id: str) -> Appointment:
        appointment = self._load(appointment_id)
        self._require_transition(appointment, AppointmentStatus.completed)

        quantities: OrderedDict[str, int] = OrderedDict()
        for line in appointment.request.products:
            quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

        shortages: dict[str, tuple[int, int]] = {}
        for product_id, quantity in quantities.items():
            available = self._call(self._inventory.available_quantity, product_id)
            if quantity > available:
                shortages[product_id] = (quantity, available)
        if shortages:
            self._logger.info(
                "Completion refused for insufficient stock",
                extra={"appointment_id": appointment.id, "reason": ",".join(shortages)},
            )
            raise InsufficientStock(shortages)

        decremented: list[tuple[str, int]] = []
        try:
            for product_id, quantity in quantities.items():
                self._inventory.decrement_stock(product_id, quantity)
                decremented.append((product_id, quantity))
            self._schedule.set_status(appointment.id, AppointmentStatus.completed)
            updated = self._repository.update_status(
                appointment.id,
                AppointmentStatus.completed,
                {"completed_at": self._clock.now()},
            )
        except BaseException as exc:
            self._undo_complete(appointment, decremented)
            if isinstance(exc, Exception) and not isinstance(exc, BookingError):
                raise PersistenceFailure(f"Complete failed for appointment {appointment.id}") from exc
            raise

        self._logger.info("Appointment completed", extra={"appointment_id": appointment.id, "status": "completed"})
        return updated

    def mark_paid(self, appointment_id: str) -> Appointment:
        """Record settlement. Orthogonal to status."""
        appointment = self._load(appointment_id)
        if appointment.paid:
            return appointment

        if appointment.status == AppointmentStatus.pending:
            # no pending payment exists before accept
            self._call(
                self._payments.create_pending_payment,
                appointment.id,
                appointment.total_amount,
                appointment.request.payment_method,
            )
        self._call(self._payments.settle_payment, appointment.id)
        updated = self._call(
            self._repository.update_status,
            appointment.id,
            appointment.status,
            {"paid": True, "paid_at": self._clock.now()},
        )
        self._logger.info("Appointment marked paid", extra={"appointment_id": appointment.id, "invoice_number": appointment.invoice_number})
        return updated

    # ── Queries ──────────────────────────────────────────────────────────

    def get(self, appointment_id: str) -> Appointment:
        return self._load(appointment_id)

    def list_appointments(self, status: AppointmentStatus | None = None) -> list[Appointment]:
        return self._call(self._repository.list_appointments, status)

    def customer_history(self, email: str) -> list[Appointment]:
        return self._call(self._repository.find_by_customer, email.strip().lower())

    # ── Startup ──────────────────────────────────────────────────────────

    def restore_schedule(self) -> int:
        """
        Rebuild the schedule from stored appointments: pending ones as holds
        on the requested staff, confirmed and completed ones as claims on
        their executors. Returns the number of segments restored.
        """
        restored = 0
        for status in (AppointmentStatus.confirmed, AppointmentStatus.completed, AppointmentStatus.pending):
            for appointment in self._call(self._repository.list_appointments, status):
                claiming = status in CLAIMING_STATUSES
                for index, segment in enumerate(appointment.request.segments):
                    staff_id = appointment.staff_for_segment(index) if claiming else segment.staff_id
                    if not staff_id:
                        continue
                    booked = BookedSegment(
                        appointment_id=appointment.id,
                        staff_id=staff_id,
                        day=segment.day,
                        interval=segment.interval.padded(self._conflict_buffer_minutes) if claiming else segment.interval,
                        status=status,
                        service_id=segment.service_id,
                    )
                    try:
                        self._schedule.insert_segment(booked)
                    except SchedulingConflict:
                        self._logger.error(
                            "Stored appointment overlaps another claim, segment not restored",
                            extra={"appointment_id": appointment.id, "staff_id": staff_id},
                        )
                        continue
                    restored += 1
        self._logger.info("Schedule restored with %d segments", restored)
        return restored

    # ── Internals ────────────────────────────────────────────────────────

    def _reschedule(self, request: BookingRequest, day: date, start: time, staff_assignments: dict[int, str]) -> BookingRequest:
        """Chain the segments back to back from start on day and validate the new slot."""
        if day < self._clock.today():
            raise ValidationError({"date": "A repeated appointment cannot be scheduled in the past"})
        segments = []
        cursor = minute_of_day(start)
        for index, segment in enumerate(request.segments):
            segments.append(
                replace(
                    segment,
                    day=day,
                    start=minutes_to_time(cursor),
                    staff_id=staff_assignments.get(index) or segment.staff_id,
                )
            )
            cursor += segment.duration_minutes
        errors = self._staff_errors(segments, {i: s.staff_id for i, s in enumerate(segments) if s.staff_id})
        if errors:
            raise ValidationError(errors)
        return replace(request, day=day, start=start, segments=tuple(segments))

    def _staff_errors(self, segments, assignments: dict[int, str]) -> dict[str, str]:
        """Each assigned staff member must exist, offer the service and work the whole interval."""
        roster = {member.id: member for member in self._call(self._catalog.list_staff)}
        errors: dict[str, str] = {}
        for index, staff_id in assignments.items():
            if index >= len(segments):
                errors[f"segments.{index}"] = "No such segment"
                continue
            segment = segments[index]
            member = roster.get(staff_id)
            if member is None:
                errors[f"segments.{index}"] = f"Unknown staff member {staff_id}"
            elif not member.can_perform(segment.service_id):
                errors[f"segments.{index}"] = f"{member.name} does not perform {segment.service_name}"
            else:
                window = member.window_for(segment.day)
                interval = segment.interval
                if window is None or not window.covers(interval.start, interval.end):
                    errors[f"segments.{index}"] = f"{member.name} is not working {interval.label()} on {segment.day.isoformat()}"
        return errors

    def _load(self, appointment_id: str) -> Appointment:
        appointment = self._call(self._repository.find_by_id, appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        return appointment

    def _require_transition(self, appointment: Appointment, target: AppointmentStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[appointment.status]:
            raise InvalidTransition(f"Cannot move appointment {appointment.id} from {appointment.status.value} to {target.value}")

    def _recompute(self, request: BookingRequest) -> BookingRequest:
        """Never trust client-supplied prices or aggregates."""
        segments = tuple(
            replace(s, price=round_money(discounted_price(s.original_price, s.discount_percent)))
            for s in request.segments
        )
        totals = line_total([*segments, *request.products])
        if totals != request.totals:
            self._logger.warning(
                "Submitted totals differed from recomputed totals",
                extra={"invoice_number": request.invoice_number},
            )
        return replace(request, segments=segments, totals=totals)

    def _create(self, request: BookingRequest, repeated_from: str | None = None) -> Appointment:
        for attempt in range(1, self._max_invoice_attempts + 1):
            try:
                return self._repository.create(request, repeated_from=repeated_from)
            except DuplicateInvoiceNumber:
                self._logger.warning(
                    "Invoice number collision, re-rolling (attempt %d/%d)",
                    attempt,
                    self._max_invoice_attempts,
                    extra={"invoice_number": request.invoice_number},
                )
                request = replace(request, invoice_number=self._invoice_numbers.generate())
            except BookingError:
                raise
            except Exception as exc:
                raise PersistenceFailure("Could not create appointment") from exc
        raise PersistenceFailure(f"Could not allocate a unique invoice number after {self._max_invoice_attempts} attempts")

    def _record_holds(self, appointment: Appointment) -> None:
        """Pending holds make the slot look busy to availability reads; they never block accept."""
        for segment in appointment.request.segments:
            if not segment.staff_id:
                continue
            self._call(
                self._schedule.insert_segment,
                BookedSegment(
                    appointment_id=appointment.id,
                    staff_id=segment.staff_id,
                    day=segment.day,
                    interval=segment.interval,
                    status=AppointmentStatus.pending,
                    service_id=segment.service_id,
                ),
            )

    def _release_holds(self, appointment_id: str) -> None:
        self._call(self._schedule.remove_segments, appointment_id, AppointmentStatus.pending)

    def _check_claims(self, appointment: Appointment, claimed: list[BookedSegment]) -> None:
        conflicts: list[dict[str, str]] = []
        for index, segment in enumerate(claimed):
            existing = self._call(self._schedule.segments_for, segment.staff_id, segment.day)
            for other in self._guard.find_conflicts(
                segment.interval,
                existing,
                ignore_appointment_id=appointment.id,
                statuses=CLAIMING_STATUSES,
            ):
                conflicts.append(_conflict_detail(segment, other.appointment_id, other.interval.label()))
            # segments of the same appointment must not double-book one staff member either
            for sibling in claimed[index + 1 :]:
                if (sibling.staff_id, sibling.day) == (segment.staff_id, segment.day) and intervals_overlap(
                    sibling.interval, segment.interval
                ):
                    conflicts.append(_conflict_detail(segment, appointment.id, sibling.interval.label()))
        if conflicts:
            self._logger.info(
                "Accept refused by scheduling conflict",
                extra={"appointment_id": appointment.id, "staff_id": ",".join(sorted({c["staff_id"] for c in conflicts}))},
            )
            raise SchedulingConflict(f"Appointment {appointment.id} conflicts with existing bookings", conflicts)

    def _undo_accept(self, appointment: Appointment, inserted: bool, payment_created: bool) -> None:
        if inserted:
            self._schedule.remove_segments(appointment.id, AppointmentStatus.confirmed)
        if payment_created:
            self._payments.void_payment(appointment.id)
        self._logger.warning("Accept rolled back", extra={"appointment_id": appointment.id})

    def _undo_complete(self, appointment: Appointment, decremented: list[tuple[str, int]]) -> None:
        for product_id, quantity in decremented:
            self._inventory.restock(product_id, quantity)
        self._schedule.set_status(appointment.id, AppointmentStatus.confirmed)
        self._logger.warning("Completion rolled back", extra={"appointment_id": appointment.id})

    def _call(self, func, *args):
        """Run a collaborator call, surfacing unexpected failures as PersistenceFailure."""
        try:
            return func(*args)
        except BookingError:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"{getattr(func, '__qualname__', func)} failed") from exc


def _conflict_detail(segment: BookedSegment, other_appointment_id: str, other_interval: str) -> dict[str, str]:
    return {
        "staff_id": segment.staff_id,
        "date": segment.day.isoformat(),
        "interval": segment.interval.label(),
        "conflicts_with": other_appointment_id,
        "conflicting_interval": other_interval,
    }
