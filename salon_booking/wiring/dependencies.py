from functools import lru_cache
import logging

from salon_booking.application.ports.appointment_repository import AppointmentRepositoryPort
from salon_booking.application.ports.catalog import CatalogPort
from salon_booking.application.ports.clock import ClockPort
from salon_booking.application.use_cases.appointment_lifecycle import AppointmentLifecycle
from salon_booking.application.use_cases.availability import AvailabilityResolver
from salon_booking.application.use_cases.booking_session import BookingRules, BookingSessionBuilder
from salon_booking.application.use_cases.conflict_guard import ConflictGuard
from salon_booking.application.use_cases.invoice_number import InvoiceNumberGenerator
from salon_booking.application.utils.time_utils import parse_time
from salon_booking.core.config import settings
from salon_booking.infrastructure.catalog.catalog_store import CatalogStore
from salon_booking.infrastructure.clock import SystemClock
from salon_booking.infrastructure.inventory.memory_inventory import MemoryInventory
from salon_booking.infrastructure.payments.mock_gateway import MockPaymentGateway
from salon_booking.infrastructure.store.json_store import JsonAppointmentRepository
from salon_booking.infrastructure.store.memory_store import MemoryAppointmentRepository, MemorySchedule


logger = logging.getLogger(__name__)


@lru_cache
def get_clock() -> ClockPort:
    return SystemClock(settings.BUSINESS_TIMEZONE)


@lru_cache
def get_catalog() -> CatalogPort:
    if settings.CATALOG_PATH:
        logger.info("Loading catalog from %s", settings.CATALOG_PATH)
        return CatalogStore.from_json_file(settings.CATALOG_PATH)
    logger.info("CATALOG_PATH not set, starting with an empty catalog")
    return CatalogStore()


@lru_cache
def get_schedule() -> MemorySchedule:
    return MemorySchedule()


@lru_cache
def get_conflict_guard() -> ConflictGuard:
    # one guard per process so every writer shares the same slot locks
    return ConflictGuard()


@lru_cache
def get_appointment_repository() -> AppointmentRepositoryPort:
    if settings.STORE_PROVIDER.lower() == "json":
        return JsonAppointmentRepository(clock=get_clock(), data_dir=settings.DATA_DIR)
    return MemoryAppointmentRepository(clock=get_clock())


@lru_cache
def get_inventory() -> MemoryInventory:
    catalog = get_catalog()
    products = catalog.list_products() if isinstance(catalog, CatalogStore) else []
    return MemoryInventory({p.id: p.stock_quantity for p in products})


@lru_cache
def get_payment_gateway() -> MockPaymentGateway:
    return MockPaymentGateway(clock=get_clock())


@lru_cache
def get_invoice_generator() -> InvoiceNumberGenerator:
    return InvoiceNumberGenerator.resuming(
        clock=get_clock(),
        repository=get_appointment_repository(),
        scope=settings.INVOICE_SCOPE,
        sequence_start=settings.INVOICE_SEQUENCE_START,
    )


@lru_cache
def get_availability_resolver() -> AvailabilityResolver:
    get_lifecycle()  # schedule restore happens there
    return AvailabilityResolver(
        catalog=get_catalog(),
        schedule=get_schedule(),
        guard=get_conflict_guard(),
        buffer_minutes=settings.CONFLICT_BUFFER_MINUTES,
    )


@lru_cache
def get_lifecycle() -> AppointmentLifecycle:
    lifecycle = AppointmentLifecycle(
        repository=get_appointment_repository(),
        schedule=get_schedule(),
        payments=get_payment_gateway(),
        inventory=get_inventory(),
        catalog=get_catalog(),
        invoice_numbers=get_invoice_generator(),
        clock=get_clock(),
        guard=get_conflict_guard(),
        max_invoice_attempts=settings.INVOICE_MAX_ATTEMPTS,
        conflict_buffer_minutes=settings.CONFLICT_BUFFER_MINUTES,
    )
    # the schedule lives in memory; rebuild it from stored appointments
    lifecycle.restore_schedule()
    return lifecycle


def get_booking_rules() -> BookingRules:
    return BookingRules(
        max_booking_days=settings.MAX_BOOKING_DAYS,
        working_hours_start=parse_time(settings.WORKING_HOURS_START) or BookingRules.working_hours_start,
        working_hours_end=parse_time(settings.WORKING_HOURS_END) or BookingRules.working_hours_end,
        cleanup_buffer_percent=settings.CLEANUP_BUFFER_PERCENT,
    )


def new_booking_session() -> BookingSessionBuilder:
    """A fresh builder per checkout; sessions share nothing but the read-only collaborators."""
    return BookingSessionBuilder(
        catalog=get_catalog(),
        resolver=get_availability_resolver(),
        invoice_numbers=get_invoice_generator(),
        clock=get_clock(),
        rules=get_booking_rules(),
    )
