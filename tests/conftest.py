from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, datetime

import pytest

from salon_booking.application.ports.appointment_repository import AppointmentRepositoryPort
from salon_booking.application.use_cases.appointment_lifecycle import AppointmentLifecycle
from salon_booking.application.use_cases.availability import AvailabilityResolver
from salon_booking.application.use_cases.booking_session import BookingRules, BookingSessionBuilder
from salon_booking.application.use_cases.conflict_guard import ConflictGuard
from salon_booking.application.use_cases.invoice_number import DATE_SCOPE, InvoiceNumberGenerator
from salon_booking.domain.entities.product import Product
from salon_booking.domain.entities.service import Service
from salon_booking.domain.entities.staff import StaffMember
from salon_booking.infrastructure.catalog.catalog_store import CatalogStore
from salon_booking.infrastructure.clock import FixedClock
from salon_booking.infrastructure.inventory.memory_inventory import MemoryInventory
from salon_booking.infrastructure.payments.mock_gateway import MockPaymentGateway
from salon_booking.infrastructure.store.json_store import JsonAppointmentRepository
from salon_booking.infrastructure.store.memory_store import MemoryAppointmentRepository, MemorySchedule

# 2026-10-19 is a Monday
MONDAY = date(2026, 10, 19)
NOW = datetime(2026, 10, 19, 8, 0)

CATALOG_PAYLOAD = {
    "services": [
        {"id": "haircut", "name": "Haircut", "price": 50, "duration_minutes": 30, "discount_percent": 0},
        {"id": "manicure", "name": "Manicure", "price": 35, "duration_minutes": 30, "discount_percent": 20},
        {"id": "coloring", "name": "Hair Coloring", "price": 120, "duration_minutes": 90, "discount_percent": 10},
        {"id": "massage", "name": "Massage", "price": 80, "duration_minutes": 60},
    ],
    "products": [
        {"id": "shampoo", "name": "Argan Shampoo", "price": 12, "stock_quantity": 2},
        {"id": "serum", "name": "Hair Serum", "price": 20, "discount_percent": 25, "stock_quantity": 10},
    ],
    "staff": [
        {
            "id": "x",
            "name": "Aysel Mammadova",
            "position": "Senior stylist",
            "specializations": ["haircut", "manicure", "coloring"],
            "working_hours": {
                "mon": {"start": "09:00", "end": "17:00"},
                "tue": {"start": "09:00", "end": "17:00"},
                "wed": {"start": "09:00", "end": "17:00"},
                "thu": {"start": "09:00", "end": "17:00"},
                "fri": {"start": "09:00", "end": "17:00"},
                "sat": None,
            },
        },
        {
            "id": "y",
            "name": "Leyla Aliyeva",
            "position": "Stylist",
            "specializations": ["haircut"],
            "working_hours": {"mon": {"start": "12:00", "end": "18:00"}},
        },
        {
            "id": "z",
            "name": "Nigar Huseynova",
            "position": "Nail technician",
            "specializations": ["manicure"],
            "working_hours": {"1": {"start": "10:00", "end": "16:00"}, "5": {"start": "10:00", "end": "16:00"}},
        },
    ],
}


@dataclass
class Engine:
    catalog: CatalogStore
    schedule: MemorySchedule
    repository: AppointmentRepositoryPort
    inventory: MemoryInventory
    payments: MockPaymentGateway
    clock: FixedClock
    invoices: InvoiceNumberGenerator
    guard: ConflictGuard
    resolver: AvailabilityResolver
    lifecycle: AppointmentLifecycle

    def session(self, rules: BookingRules | None = None) -> BookingSessionBuilder:
        return BookingSessionBuilder(
            catalog=self.catalog,
            resolver=self.resolver,
            invoice_numbers=self.invoices,
            clock=self.clock,
            rules=rules,
        )


def build_engine(
    invoices: InvoiceNumberGenerator | None = None,
    data_dir: str | None = None,
    invoice_scope: str = DATE_SCOPE,
) -> Engine:
    """In-memory engine; with data_dir, appointments go to a JSON store and the schedule is restored from it."""
    clock = FixedClock(NOW)
    catalog = CatalogStore.from_payload(CATALOG_PAYLOAD)
    schedule = MemorySchedule()
    if data_dir:
        repository = JsonAppointmentRepository(clock=clock, data_dir=data_dir)
    else:
        repository = MemoryAppointmentRepository(clock=clock)
    inventory = MemoryInventory({p.id: p.stock_quantity for p in catalog.list_products()})
    payments = MockPaymentGateway(clock=clock)
    invoices = invoices or InvoiceNumberGenerator.resuming(
        clock=clock, repository=repository, scope=invoice_scope, rng=random.Random(7)
    )
    guard = ConflictGuard()
    resolver = AvailabilityResolver(catalog=catalog, schedule=schedule, guard=guard)
    lifecycle = AppointmentLifecycle(
        repository=repository,
        schedule=schedule,
        payments=payments,
        inventory=inventory,
        catalog=catalog,
        invoice_numbers=invoices,
        clock=clock,
        guard=guard,
    )
    lifecycle.restore_schedule()
    return Engine(catalog, schedule, repository, inventory, payments, clock, invoices, guard, resolver, lifecycle)


@pytest.fixture
def engine() -> Engine:
    return build_engine()


def fill_customer(session: BookingSessionBuilder, day: date = MONDAY, start: str = "09:30", **overrides) -> None:
    values = {
        "full_name": "Gunel Rzayeva Kamal",
        "gender": "f",
        "email": "gunel@example.com",
        "phone": "+994 50 123 45 67",
        "day": day,
        "start": start,
    }
    values.update(overrides)
    session.set_customer_info(**values)


def book(
    engine: Engine,
    services: list[tuple[str, str]],
    start: str = "09:30",
    products: list[tuple[str, int]] | None = None,
    payment_method: str = "cash",
):
    """Run a full checkout and submit it. services: [(service_id, staff_id)]."""
    session = engine.session()
    fill_customer(session, start=start)
    session.next_step()
    for service_id, staff_id in services:
        session.add_service(service_id)
        session.assign_staff(service_id, staff_id)
    session.next_step()
    for product_id, quantity in products or []:
        session.set_product(product_id, quantity)
    session.next_step()
    session.set_payment_method(payment_method)
    return engine.lifecycle.submit(session.confirm())


@pytest.fixture
def catalog_payload() -> dict:
    return CATALOG_PAYLOAD


@pytest.fixture
def staff_roster() -> list[StaffMember]:
    return [StaffMember.from_payload(s) for s in CATALOG_PAYLOAD["staff"]]


@pytest.fixture
def services() -> dict[str, Service]:
    return {s["id"]: Service.from_payload(s) for s in CATALOG_PAYLOAD["services"]}


@pytest.fixture
def products() -> dict[str, Product]:
    return {p["id"]: Product.from_payload(p) for p in CATALOG_PAYLOAD["products"]}
