# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + a quick count of bookable capacity.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func, text
from app.database import get_db
from app.models.charging_slot import ChargingSlot
from app.utils.logger import get_logger
from datetime import datetime

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Slot counts by stored status
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "slots": {},
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
        rows = db.query(ChargingSlot.status, func.count(ChargingSlot.id)).group_by(ChargingSlot.status).all()
        result["slots"] = {status: count for status, count in rows}
    except Exception as e:
        logger.error(f"Health check DB error: {e}", exc_info=True)
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
