import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from database import DataStore, get_store
from errors import ApiError, NotFoundError, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/centers", tags=["centers"])


def _update_center(store: DataStore, center_id: str, values: dict, failure: str) -> None:
    try:
        rows = store.update("centers", values, eq={"id": center_id})
    except StoreError:
        logger.exception("%s (center %s)", failure.upper(), center_id)
        raise ApiError(failure)
    if not rows:
        raise NotFoundError("Center not found")


@router.get("")
def list_centers(store: DataStore = Depends(get_store)):
    """All centers, active and inactive."""
    try:
        return store.select("centers", order="id")
    except StoreError:
        logger.exception("FETCH CENTERS ERROR")
        raise ApiError("Failed to fetch centers")


@router.get("/active")
def list_active_centers(store: DataStore = Depends(get_store)):
    try:
        return store.select("centers", eq={"is_active": True}, order="id")
    except StoreError:
        logger.exception("FETCH ACTIVE CENTERS ERROR")
        raise ApiError("Failed to fetch active centers")


@router.put("/{center_id}/activate")
def activate_center(center_id: str, store: DataStore = Depends(get_store)):
    _update_center(store, center_id, {"is_active": True}, "Failed to activate center")
    return {"success": True, "message": "Center activated successfully"}


@router.put("/{center_id}/deactivate")
def deactivate_center(center_id: str, store: DataStore = Depends(get_store)):
    _update_center(store, center_id, {"is_active": False}, "Center deactivation failed")
    return {"success": True, "message": "Center deactivated successfully"}


@router.put("/{center_id}/open")
def open_center(center_id: str, store: DataStore = Depends(get_store)):
    """Reopen a center for the day."""
    _update_center(store, center_id, {"day_closed": False, "day_closed_date": None}, "Failed to open center")
    return {"success": True, "message": "Center opened successfully"}


@router.put("/{center_id}/day-close")
def day_close_center(center_id: str, store: DataStore = Depends(get_store)):
    closed_at = datetime.now(timezone.utc).isoformat()
    _update_center(store, center_id, {"day_closed": True, "day_closed_date": closed_at}, "Day close failed")
    return {"success": True, "message": "Day closed successfully"}
