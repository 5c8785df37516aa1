# app/services/stream_service.py
"""
Server-Sent Events feeds for charging progress and reservation state.

Each poll opens its own short session from the given factory and runs in a
worker thread, so a stream never pins a connection or blocks the event loop.
Callers validate access first and pass the first snapshot in as `initial`.
"""

import asyncio
import json
from typing import Callable, Optional

from fastapi.encoders import jsonable_encoder

from app.config import settings
from app.models.reservation import TERMINAL_STATUSES
from app.services.charging_service import get_charging_progress
from app.services.reservation_service import get_reservation_info
from app.utils.errors import ServiceError
from app.utils.logger import get_logger

logger = get_logger(__name__)


def format_sse(data: dict, event: Optional[str] = None) -> str:
    """One SSE frame. Datetimes are ISO-encoded."""
    frame = f"event: {event}\n" if event else ""
    return frame + f"data: {json.dumps(jsonable_encoder(data))}\n\n"


def _poll(session_factory: Callable, fn: Callable, *args, **kwargs):
    db = session_factory()
    try:
        return fn(db, *args, **kwargs)
    finally:
        db.close()


async def charging_progress_events(session_factory: Callable, session_id: int, initial: dict,
                                   interval: Optional[float] = None):
    """Progress frames until the session is finished."""
    interval = settings.STREAM_INTERVAL_SECONDS if interval is None else interval
    progress = initial
    yield format_sse(progress)
    while not progress["finished"]:
        await asyncio.sleep(interval)
        try:
            progress = await asyncio.to_thread(_poll, session_factory, get_charging_progress, session_id)
        except ServiceError as e:
            logger.warning(f"[STREAM] Charging session {session_id} stream stopped: {e.message}")
            yield format_sse({"error": e.kind, "message": e.message}, event="error")
            return
        yield format_sse(progress)


async def reservation_events(session_factory: Callable, reservation_id: int, initial: dict,
                             requester_user_id=None, is_admin_or_staff: bool = False,
                             interval: Optional[float] = None):
    """
    reservation_info once, then status_update whenever status or qr_check
    changes, then stream_end once the reservation is completed or cancelled.
    """
    interval = settings.STREAM_INTERVAL_SECONDS if interval is None else interval
    info = initial
    yield format_sse(info, event="reservation_info")

    last = (info["status"], info["qr_check"])
    while info["status"] not in TERMINAL_STATUSES:
        await asyncio.sleep(interval)
        try:
            info = await asyncio.to_thread(
                _poll, session_factory, get_reservation_info, reservation_id,
                requester_user_id, is_admin_or_staff,
            )
        except ServiceError as e:
            logger.warning(f"[STREAM] Reservation {reservation_id} stream stopped: {e.message}")
            yield format_sse({"error": e.kind, "message": e.message}, event="error")
            return
        current = (info["status"], info["qr_check"])
        if current != last:
            last = current
            yield format_sse({"id": info["id"], "status": info["status"], "qr_check": info["qr_check"]},
                             event="status_update")

    yield format_sse({"id": info["id"], "status": info["status"]}, event="stream_end")
