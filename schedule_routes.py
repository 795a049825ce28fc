import logging

from fastapi import APIRouter, Depends

from database import DataStore, get_store
from errors import ApiError, StoreError, ValidationError
from schemas import ScheduleSaveRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schedule", tags=["schedule"])


@router.post("/save")
def save_schedule(payload: ScheduleSaveRequest, store: DataStore = Depends(get_store)):
    """Record which day and week a center collects on."""
    if not payload.centerId or not payload.date or not payload.day or not payload.week:
        raise ValidationError("Missing required fields")

    row = {
        "center_id": payload.centerId,
        "schedule_date": payload.date,
        "day_name": payload.day,
        "week_number": payload.week,
    }
    try:
        data = store.insert("schedules", [row])
    except StoreError:
        logger.exception("SAVE SCHEDULE ERROR")
        raise ApiError("Failed to save schedule")

    return {"message": "Schedule saved successfully", "data": data}
