import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException

from app.api.v1.schemas import BookingSchema, CreateBookingRequestSchema
from app.application.exceptions import (
    BookingNotFound,
    CalendarUnavailable,
    ConcurrentUpdateError,
    InvalidTransition,
    SlotUnavailable,
)
from app.application.ports.booking_store import BookingStorePort
from app.application.use_cases.booking import CancelBookingUseCase, CreateBookingUseCase
from app.application.utils.date_parser import parse_local_date
from app.core.config import settings
from app.wiring.dependencies import (
    get_booking_store,
    get_cancel_booking_use_case,
    get_create_booking_use_case,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def require_admin(authorization: str | None = Header(None)) -> None:
    expected = settings.ADMIN_API_KEY
    if not expected:
        raise HTTPException(status_code=403, detail="Admin access not configured")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid admin credentials")


@router.post("/bookings", response_model=BookingSchema, status_code=201)
def create_booking(
    req: CreateBookingRequestSchema,
    uc: CreateBookingUseCase = Depends(get_create_booking_use_case),
):
    try:
        booking = uc.execute(
            day=parse_local_date(req.date),
            start_time=req.start_time,
            duration_hours=req.duration_hours,
            customer_name=req.customer_name,
            customer_email=req.customer_email,
            customer_phone=req.customer_phone,
            service=req.service,
            notes=req.notes,
            total_price=req.total_price,
            deposit_amount=req.deposit_amount,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SlotUnavailable as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CalendarUnavailable:
        raise HTTPException(status_code=503, detail="Calendar temporarily unavailable")

    return BookingSchema.from_booking(booking)


@router.get("/bookings/{booking_id}", response_model=BookingSchema)
def get_booking(booking_id: str, store: BookingStorePort = Depends(get_booking_store)):
    try:
        booking = store.get(booking_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return BookingSchema.from_booking(booking)


@router.post(
    "/admin/bookings/{booking_id}/cancel",
    response_model=BookingSchema,
    dependencies=[Depends(require_admin)],
)
def cancel_booking(
    booking_id: str,
    uc: CancelBookingUseCase = Depends(get_cancel_booking_use_case),
):
    try:
        booking = uc.execute(booking_id)
    except BookingNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (InvalidTransition, ConcurrentUpdateError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    return BookingSchema.from_booking(booking)
