from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from salon_booking.api.v1.errors import to_http_exception
from salon_booking.api.v1.schemas import (
    AppointmentSchema,
    AvailabilityResponseSchema,
    BookingCreateSchema,
    StaffSchema,
)
from salon_booking.application.exceptions import BookingError
from salon_booking.application.use_cases.appointment_lifecycle import AppointmentLifecycle
from salon_booking.application.use_cases.availability import AvailabilityResolver
from salon_booking.application.use_cases.booking_session import BookingSessionBuilder
from salon_booking.application.utils.time_utils import parse_time
from salon_booking.domain.entities.booking_request import RequestInfo
from salon_booking.wiring.dependencies import get_availability_resolver, get_lifecycle, new_booking_session

router = APIRouter()


@router.get("/availability", response_model=AvailabilityResponseSchema)
def availability(
    service_id: str = Query(...),
    day: date = Query(..., alias="date"),
    time: str = Query(...),
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
):
    start = parse_time(time)
    if start is None:
        raise HTTPException(status_code=422, detail={"errors": {"time": "Expected HH:MM"}})

    result = resolver.resolve(service_id, day, start)
    return AvailabilityResponseSchema(
        service_id=service_id,
        date=day,
        time=start.strftime("%H:%M"),
        staff=[StaffSchema(id=s.id, name=s.name, position=s.position) for s in result.staff],
        reason=result.reason,
        qualified_count=result.qualified_count,
        working_count=result.working_count,
    )


@router.post("/bookings", response_model=AppointmentSchema, status_code=201)
def create_booking(
    req: BookingCreateSchema,
    session: BookingSessionBuilder = Depends(new_booking_session),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    """Run the whole checkout from one payload and submit it."""
    try:
        session.set_customer_info(
            full_name=req.customer.full_name,
            gender=req.customer.gender,
            email=req.customer.email,
            phone=req.customer.phone,
            day=req.date,
            start=req.time,
            note=req.customer.note,
            customer_id=req.customer.customer_id,
        )
        if req.request_info:
            session.set_request_info(RequestInfo(**req.request_info.model_dump()))
        session.next_step()

        for selection in req.services:
            session.add_service(selection.service_id)
            if selection.staff_id:
                session.assign_staff(selection.service_id, selection.staff_id)
        session.next_step()

        for item in req.products:
            session.set_product(item.product_id, item.quantity)
        session.next_step()

        session.set_payment_method(req.payment_method)
        request = session.confirm()
        appointment = lifecycle.submit(request)
    except BookingError as e:
        raise to_http_exception(e)

    return AppointmentSchema.from_entity(appointment)
