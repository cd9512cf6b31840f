from fastapi import HTTPException

from salon_booking.application.exceptions import (
    BookingError,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    SchedulingConflict,
    ValidationError,
)


def to_http_exception(exc: BookingError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail={"errors": exc.errors})
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, SchedulingConflict):
        return HTTPException(status_code=409, detail={"message": str(exc), "conflicts": exc.conflicts, "retryable": True})
    if isinstance(exc, InsufficientStock):
        shortages = {pid: {"requested": req, "available": avail} for pid, (req, avail) in exc.shortages.items()}
        return HTTPException(status_code=409, detail={"message": str(exc), "shortages": shortages})
    if isinstance(exc, InvalidTransition):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, PersistenceFailure):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
