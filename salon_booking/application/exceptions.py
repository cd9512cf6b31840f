from __future__ import annotations

from typing import Any


class BookingError(RuntimeError):
    """Base class for booking engine failures."""
    pass


class ValidationError(BookingError):
    """Raised when user input fails a booking step rule. Carries a field-keyed error map."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()) or "validation failed")


class SchedulingConflict(BookingError):
    """Raised when a staff assignment overlaps an already claimed segment. Retryable."""

    def __init__(self, message: str, conflicts: list[dict[str, Any]] | None = None) -> None:
        self.conflicts = list(conflicts or [])
        super().__init__(message)


class InsufficientStock(BookingError):
    """Raised when one or more product lines exceed available stock."""

    def __init__(self, shortages: dict[str, tuple[int, int]]) -> None:
        # product_id -> (requested, available)
        self.shortages = dict(shortages)
        detail = ", ".join(f"{pid} (requested {req}, available {avail})" for pid, (req, avail) in self.shortages.items())
        super().__init__(f"Insufficient stock: {detail}")


class PersistenceFailure(BookingError):
    """Raised when a repository or gateway call fails. Fatal for the current operation."""
    pass


class DuplicateInvoiceNumber(PersistenceFailure):
    """Raised by a repository when an invoice number is already taken."""
    pass


class InvalidTransition(BookingError):
    """Raised when a status change is not allowed from the current state."""
    pass


class NotFound(BookingError):
    """Raised when an appointment or catalog record does not exist."""
    pass
