import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.v1.schemas import AvailabilityResponseSchema, SlotSchema
from app.application.exceptions import CalendarUnavailable
from app.application.use_cases.availability import AvailabilityService
from app.application.utils.date_parser import parse_duration_hours, parse_local_date
from app.wiring.dependencies import get_availability_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/availability", response_model=AvailabilityResponseSchema)
def availability(
    date: str = Query(..., description="Local calendar day, YYYY-MM-DD"),
    duration: str | None = Query(None, description="Session length in hours"),
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        day = parse_local_date(date)
        duration_hours = parse_duration_hours(duration)
        slots = service.available_slots(day, duration_hours)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CalendarUnavailable as e:
        # Fail closed: an unknown calendar must not read as an empty one
        logger.error("Availability unavailable", extra={"date": date, "error": str(e)})
        raise HTTPException(status_code=503, detail="Calendar temporarily unavailable")

    return AvailabilityResponseSchema(
        date=day.isoformat(),
        duration=duration_hours,
        slots=[SlotSchema(**slot.as_dict()) for slot in slots],
    )
