from fastapi import APIRouter, Depends, HTTPException, Query

from salon_booking.api.v1.errors import to_http_exception
from salon_booking.api.v1.schemas import AcceptRequestSchema, AppointmentSchema, RejectRequestSchema, RepeatRequestSchema
from salon_booking.application.exceptions import BookingError
from salon_booking.application.use_cases.appointment_lifecycle import AppointmentLifecycle
from salon_booking.application.utils.time_utils import parse_time
from salon_booking.domain.entities.status import AppointmentStatus
from salon_booking.wiring.dependencies import get_lifecycle

router = APIRouter()


@router.get("/appointments", response_model=list[AppointmentSchema])
def list_appointments(
    status: AppointmentStatus | None = Query(None),
    email: str | None = Query(None),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    try:
        if email:
            items = [a for a in lifecycle.customer_history(email) if status is None or a.status == status]
        else:
            items = lifecycle.list_appointments(status)
    except BookingError as e:
        raise to_http_exception(e)
    return [AppointmentSchema.from_entity(a) for a in items]


@router.get("/appointments/{appointment_id}", response_model=AppointmentSchema)
def get_appointment(appointment_id: str, lifecycle: AppointmentLifecycle = Depends(get_lifecycle)):
    try:
        return AppointmentSchema.from_entity(lifecycle.get(appointment_id))
    except BookingError as e:
        raise to_http_exception(e)


@router.post("/appointments/{appointment_id}/accept", response_model=AppointmentSchema)
def accept(
    appointment_id: str,
    req: AcceptRequestSchema | None = None,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    try:
        appointment = lifecycle.accept(appointment_id, req.staff_assignments if req else None)
    except BookingError as e:
        raise to_http_exception(e)
    return AppointmentSchema.from_entity(appointment)


@router.post("/appointments/{appointment_id}/reject", response_model=AppointmentSchema)
def reject(appointment_id: str, req: RejectRequestSchema, lifecycle: AppointmentLifecycle = Depends(get_lifecycle)):
    try:
        appointment = lifecycle.reject(appointment_id, req.reason)
    except BookingError as e:
        raise to_http_exception(e)
    return AppointmentSchema.from_entity(appointment)


@router.post("/appointments/{appointment_id}/complete", response_model=AppointmentSchema)
def complete(appointment_id: str, lifecycle: AppointmentLifecycle = Depends(get_lifecycle)):
    try:
        appointment = lifecycle.complete(appointment_id)
    except BookingError as e:
        raise to_http_exception(e)
    return AppointmentSchema.from_entity(appointment)


@router.post("/appointments/{appointment_id}/repeat", response_model=AppointmentSchema, status_code=201)
def repeat(
    appointment_id: str,
    req: RepeatRequestSchema | None = None,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    req = req or RepeatRequestSchema()
    start = parse_time(req.time) if req.time else None
    if req.time and start is None:
        raise HTTPException(status_code=422, detail={"errors": {"time": "Expected HH:MM"}})
    try:
        appointment = lifecycle.repeat(appointment_id, req.date, start, req.staff_assignments or None)
    except BookingError as e:
        raise to_http_exception(e)
    return AppointmentSchema.from_entity(appointment)


@router.post("/appointments/{appointment_id}/mark-paid", response_model=AppointmentSchema)
def mark_paid(appointment_id: str, lifecycle: AppointmentLifecycle = Depends(get_lifecycle)):
    try:
        appointment = lifecycle.mark_paid(appointment_id)
    except BookingError as e:
        raise to_http_exception(e)
    return AppointmentSchema.from_entity(appointment)
