"""
Tests for the appointment state machine and its side effects.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import time, timedelta
from decimal import Decimal

import pytest

from conftest import MONDAY, NOW, book, fill_customer
from salon_booking.application.exceptions import (
    InsufficientStock,
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    SchedulingConflict,
    ValidationError,
)
from salon_booking.domain.entities.booking_request import PriceTotals
from salon_booking.domain.entities.status import AppointmentStatus


def test_submit_creates_pending_with_holds(engine):
    appointment = book(engine, [("haircut", "x"), ("manicure", "x")])

    assert appointment.status == AppointmentStatus.pending
    assert appointment.total_amount == Decimal("78.00")
    holds = engine.schedule.segments_for("x", MONDAY)
    assert {s.status for s in holds} == {AppointmentStatus.pending}
    assert [s.interval.label() for s in holds] == ["09:30-10:00", "10:00-10:30"]


def test_submit_recomputes_client_totals(engine):
    session = engine.session()
    fill_customer(session)
    session.next_step()
    session.add_service("manicure")
    session.assign_staff("manicure", "x")
    session.set_payment_method("cash")
    request = session.confirm()
    tampered = replace(request, totals=PriceTotals(Decimal("1"), Decimal("1"), Decimal("0")))

    appointment = engine.lifecycle.submit(tampered)

    assert appointment.request.totals == PriceTotals(Decimal("35.00"), Decimal("28.00"), Decimal("7.00"))


def test_submit_requires_staff_on_every_segment(engine):
    appointment = book(engine, [("haircut", "x")])
    segments = tuple(replace(s, staff_id=None) for s in appointment.request.segments)
    unstaffed = replace(appointment.request, segments=segments, invoice_number="INV-20261019-999")

    with pytest.raises(ValidationError):
        engine.lifecycle.submit(unstaffed)


def test_accept_claims_slot_and_creates_payment(engine):
    appointment = book(engine, [("haircut", "x")])

    accepted = engine.lifecycle.accept(appointment.id)

    assert accepted.status == AppointmentStatus.confirmed
    assert accepted.executors == {0: "x"}
    segments = engine.schedule.segments_for("x", MONDAY)
    assert [s.status for s in segments] == [AppointmentStatus.confirmed]
    payment = engine.payments.get_payment(appointment.id)
    assert payment.status == "pending"
    assert payment.amount == Decimal("50.00")


def test_accept_with_reassigned_staff(engine):
    appointment = book(engine, [("haircut", "y")], start="13:00")

    accepted = engine.lifecycle.accept(appointment.id, {0: "x"})

    assert accepted.executors == {0: "x"}
    assert engine.schedule.segments_for("y", MONDAY) == []
    assert len(engine.schedule.segments_for("x", MONDAY)) == 1


def test_accept_conflict_leaves_state_untouched(engine):
    first = book(engine, [("haircut", "x")], start="09:30")
    engine.lifecycle.accept(first.id)
    second = book(engine, [("haircut", "y")], start="13:00")
    engine.lifecycle.accept(second.id)

    third = book(engine, [("haircut", "x")], start="13:00")
    with pytest.raises(SchedulingConflict) as exc:
        engine.lifecycle.accept(third.id, {0: "y"})

    assert exc.value.conflicts[0]["conflicts_with"] == second.id
    assert engine.repository.find_by_id(third.id).status == AppointmentStatus.pending
    assert engine.payments.get_payment(third.id) is None
    assert [s.appointment_id for s in engine.schedule.segments_for("y", MONDAY)] == [second.id]


def test_concurrent_accepts_for_same_slot(engine):
    """Two pending bookings for one slot: exactly one accept wins."""
    a = book(engine, [("haircut", "x")], start="11:00")
    # second customer picks the same slot before the first is confirmed
    b_request = replace(a.request, invoice_number="INV-20261019-998")
    b = engine.lifecycle.submit(b_request)

    outcomes: list[str] = []
    barrier = threading.Barrier(2)

    def run(appointment_id):
        barrier.wait()
        try:
            engine.lifecycle.accept(appointment_id)
            outcomes.append("ok")
        except SchedulingConflict:
            outcomes.append("conflict")

    threads = [threading.Thread(target=run, args=(x.id,)) for x in (a, b)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["conflict", "ok"]
    confirmed = [s for s in engine.schedule.segments_for("x", MONDAY) if s.status == AppointmentStatus.confirmed]
    assert len(confirmed) == 1


def test_accept_rolls_back_when_payment_fails(engine):
    appointment = book(engine, [("haircut", "x")])

    def broken(*args):
        raise ConnectionError("gateway down")

    engine.payments.create_pending_payment = broken

    with pytest.raises(PersistenceFailure):
        engine.lifecycle.accept(appointment.id)

    assert engine.repository.find_by_id(appointment.id).status == AppointmentStatus.pending
    assert [s.status for s in engine.schedule.segments_for("x", MONDAY)] == [AppointmentStatus.pending]


def test_accept_rolls_back_when_status_write_fails(engine):
    appointment = book(engine, [("haircut", "x")])
    original_update = engine.repository.update_status

    def broken(*args, **kwargs):
        raise OSError("disk full")

    engine.repository.update_status = broken
    with pytest.raises(PersistenceFailure):
        engine.lifecycle.accept(appointment.id)
    engine.repository.update_status = original_update

    assert engine.payments.get_payment(appointment.id).status == "void"
    assert [s.status for s in engine.schedule.segments_for("x", MONDAY)] == [AppointmentStatus.pending]
    assert engine.lifecycle.accept(appointment.id).status == AppointmentStatus.confirmed


def test_reject_requires_reason(engine):
    appointment = book(engine, [("haircut", "x")])

    with pytest.raises(ValidationError):
        engine.lifecycle.reject(appointment.id, "   ")

    rejected = engine.lifecycle.reject(appointment.id, "Stylist on sick leave")
    assert rejected.status == AppointmentStatus.rejected
    assert rejected.reject_reason == "Stylist on sick leave"
    assert engine.payments.get_payment(appointment.id) is None
    assert engine.resolver.resolve("haircut", MONDAY, appointment.request.start).staff_ids == ["x"]


def test_complete_decrements_stock(engine):
    appointment = book(engine, [("haircut", "x")], products=[("serum", 3), ("shampoo", 1)])
    engine.lifecycle.accept(appointment.id)

    completed = engine.lifecycle.complete(appointment.id)

    assert completed.status == AppointmentStatus.completed
    assert completed.completed_at is not None
    assert engine.inventory.available_quantity("serum") == 7
    assert engine.inventory.available_quantity("shampoo") == 1


def test_complete_with_insufficient_stock_changes_nothing(engine):
    """Two shampoos requested with one left on the shelf: nothing is decremented."""
    appointment = book(engine, [("haircut", "x")], products=[("serum", 1), ("shampoo", 2)])
    engine.lifecycle.accept(appointment.id)
    engine.inventory.decrement_stock("shampoo", 1)  # sold over the counter meanwhile

    with pytest.raises(InsufficientStock) as exc:
        engine.lifecycle.complete(appointment.id)

    assert exc.value.shortages == {"shampoo": (2, 1)}
    assert engine.repository.find_by_id(appointment.id).status == AppointmentStatus.confirmed
    assert engine.inventory.available_quantity("serum") == 10
    assert engine.inventory.available_quantity("shampoo") == 1


def test_complete_restocks_if_decrement_races(engine):
    appointment = book(engine, [("haircut", "x")], products=[("serum", 2), ("shampoo", 2)])
    engine.lifecycle.accept(appointment.id)
    real_decrement = engine.inventory.decrement_stock

    def racing(product_id, quantity):
        if product_id == "shampoo":
            real_decrement("shampoo", 2)  # another till takes the last units first
        real_decrement(product_id, quantity)

    engine.inventory.decrement_stock = racing

    with pytest.raises(InsufficientStock):
        engine.lifecycle.complete(appointment.id)

    assert engine.inventory.available_quantity("serum") == 10
    assert engine.repository.find_by_id(appointment.id).status == AppointmentStatus.confirmed


def test_terminal_states_refuse_transitions(engine):
    appointment = book(engine, [("haircut", "x")])
    engine.lifecycle.reject(appointment.id, "Duplicate booking")

    with pytest.raises(InvalidTransition):
        engine.lifecycle.accept(appointment.id)
    with pytest.raises(InvalidTransition):
        engine.lifecycle.complete(appointment.id)
    with pytest.raises(InvalidTransition):
        engine.lifecycle.reject(appointment.id, "again")


def test_pending_cannot_complete_and_confirmed_cannot_reject(engine):
    appointment = book(engine, [("haircut", "x")])
    with pytest.raises(InvalidTransition):
        engine.lifecycle.complete(appointment.id)

    engine.lifecycle.accept(appointment.id)
    with pytest.raises(InvalidTransition):
        engine.lifecycle.reject(appointment.id, "too late")


def test_repeat_creates_fresh_pending_copy(engine):
    appointment = book(engine, [("haircut", "x"), ("manicure", "x")], products=[("serum", 1)])
    engine.lifecycle.accept(appointment.id)
    engine.lifecycle.complete(appointment.id)

    repeated = engine.lifecycle.repeat(appointment.id)

    assert repeated.id != appointment.id
    assert repeated.invoice_number != appointment.invoice_number
    assert repeated.status == AppointmentStatus.pending
    assert repeated.executors == {}
    assert repeated.reject_reason is None
    assert repeated.repeated_from == appointment.id
    assert repeated.request.segments == appointment.request.segments
    assert repeated.request.products == appointment.request.products
    assert engine.repository.find_by_id(appointment.id).status == AppointmentStatus.completed


def test_repeat_of_rejected_clears_reason(engine):
    appointment = book(engine, [("haircut", "x")])
    engine.lifecycle.reject(appointment.id, "Closed for inventory")

    repeated = engine.lifecycle.repeat(appointment.id)

    assert repeated.reject_reason is None
    assert repeated.status == AppointmentStatus.pending


def test_repeat_requires_terminal_state(engine):
    appointment = book(engine, [("haircut", "x")])
    with pytest.raises(InvalidTransition):
        engine.lifecycle.repeat(appointment.id)


def test_mark_paid_is_orthogonal_to_status(engine):
    appointment = book(engine, [("haircut", "x")])

    paid = engine.lifecycle.mark_paid(appointment.id)

    assert paid.paid is True
    assert paid.status == AppointmentStatus.pending
    assert engine.payments.get_payment(appointment.id).status == "settled"

    accepted = engine.lifecycle.accept(appointment.id)
    assert accepted.paid is True
    assert engine.payments.get_payment(appointment.id).status == "settled"


def test_mark_paid_after_accept_settles_existing_payment(engine):
    appointment = book(engine, [("haircut", "x")])
    engine.lifecycle.accept(appointment.id)

    paid = engine.lifecycle.mark_paid(appointment.id)

    assert paid.status == AppointmentStatus.confirmed
    assert paid.paid_at is not None
    assert engine.payments.get_payment(appointment.id).amount == Decimal("50.00")


def test_unknown_appointment(engine):
    with pytest.raises(NotFound):
        engine.lifecycle.accept("missing")


def test_customer_history_and_listing(engine):
    first = book(engine, [("haircut", "x")], start="09:00")
    second = book(engine, [("haircut", "x")], start="11:00")
    engine.lifecycle.reject(first.id, "No show")

    assert {a.id for a in engine.lifecycle.customer_history("GUNEL@example.com")} == {first.id, second.id}
    assert [a.id for a in engine.lifecycle.list_appointments(AppointmentStatus.pending)] == [second.id]


def test_complete_refuses_quantity_above_stock(engine):
    """Three shampoos against a stock of two: status stays confirmed."""
    appointment = book(engine, [("haircut", "x")], start="14:00", products=[("shampoo", 2)])
    lines = tuple(replace(line, quantity=3) for line in appointment.request.products)
    request = replace(appointment.request, products=lines, invoice_number="INV-20261019-997")
    engine.lifecycle.reject(appointment.id, "Re-entered with corrected quantity")

    oversold = engine.lifecycle.submit(request)
    engine.lifecycle.accept(oversold.id)

    with pytest.raises(InsufficientStock) as exc:
        engine.lifecycle.complete(oversold.id)

    assert exc.value.shortages == {"shampoo": (3, 2)}
    assert engine.repository.find_by_id(oversold.id).status == AppointmentStatus.confirmed
    assert engine.inventory.available_quantity("shampoo") == 2
    assert oversold.request.totals.discounted == Decimal("86.00")


def test_accept_checks_reassigned_staff_can_do_the_work(engine):
    """Z is a nail technician who does not work Mondays; Y starts at 12:00."""
    appointment = book(engine, [("haircut", "x")])

    with pytest.raises(ValidationError) as exc:
        engine.lifecycle.accept(appointment.id, {0: "z"})
    assert "segments.0" in exc.value.errors

    with pytest.raises(ValidationError):
        engine.lifecycle.accept(appointment.id, {0: "y"})
    with pytest.raises(ValidationError):
        engine.lifecycle.accept(appointment.id, {0: "nobody"})

    assert engine.repository.find_by_id(appointment.id).status == AppointmentStatus.pending
    assert engine.payments.get_payment(appointment.id) is None
    assert engine.schedule.segments_for("z", MONDAY) == []


def test_repeat_on_new_slot_runs_full_lifecycle(engine):
    appointment = book(engine, [("haircut", "x"), ("manicure", "x")])
    engine.lifecycle.accept(appointment.id)
    engine.lifecycle.complete(appointment.id)
    tuesday = MONDAY + timedelta(days=1)

    repeated = engine.lifecycle.repeat(appointment.id, day=tuesday, start=time(14, 0), staff_assignments={1: "z"})

    assert [(s.day, s.start, s.staff_id) for s in repeated.request.segments] == [
        (tuesday, time(14, 0), "x"),
        (tuesday, time(14, 30), "z"),
    ]
    assert repeated.request.day == tuesday
    accepted = engine.lifecycle.accept(repeated.id)
    assert accepted.executors == {0: "x", 1: "z"}
    assert engine.lifecycle.complete(repeated.id).status == AppointmentStatus.completed


def test_repeat_in_place_of_completed_source_conflicts(engine):
    appointment = book(engine, [("haircut", "x")])
    engine.lifecycle.accept(appointment.id)
    engine.lifecycle.complete(appointment.id)

    repeated = engine.lifecycle.repeat(appointment.id)

    with pytest.raises(SchedulingConflict) as exc:
        engine.lifecycle.accept(repeated.id)
    assert exc.value.conflicts[0]["conflicts_with"] == appointment.id


def test_repeat_validates_new_slot(engine):
    appointment = book(engine, [("haircut", "x")])
    engine.lifecycle.reject(appointment.id, "Customer rescheduling")

    with pytest.raises(ValidationError) as exc:
        engine.lifecycle.repeat(appointment.id, day=MONDAY - timedelta(days=1))
    assert "date" in exc.value.errors

    with pytest.raises(ValidationError) as exc:
        engine.lifecycle.repeat(appointment.id, start=time(16, 45))  # X leaves at 17:00
    assert "segments.0" in exc.value.errors
    assert len(engine.repository.list_appointments()) == 1


def test_repeat_without_new_slot_keeps_past_selections(engine):
    appointment = book(engine, [("haircut", "x")])
    engine.lifecycle.reject(appointment.id, "No show")
    engine.clock.set(NOW + timedelta(days=30))

    repeated = engine.lifecycle.repeat(appointment.id)

    assert repeated.request.segments == appointment.request.segments
    assert repeated.status == AppointmentStatus.pending
