# app/utils/validation.py
"""
Input normalisation helpers shared by the services.
Everything here raises InvalidInput with a message naming the offending field.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from app.utils.errors import InvalidInput

_DATETIME = TypeAdapter(datetime)


def ensure_valid_id(value: Any, field_name: str = "id") -> int:
    """Accept a positive int or a string of digits; return the int."""
    if value is None or value == "":
        raise InvalidInput(f"{field_name} is required")
    if isinstance(value, bool):
        raise InvalidInput(f"{field_name} is not a valid id")
    if isinstance(value, int):
        if value < 1:
            raise InvalidInput(f"{field_name} is not a valid id")
        return value
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        if parsed >= 1:
            return parsed
    raise InvalidInput(f"{field_name} is not a valid id")


def parse_instant(value: Any, field_name: str) -> datetime:
    """
    Normalise a datetime or ISO-8601 string to a naive UTC datetime.
    Naive inputs are taken as UTC already; aware ones are converted.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = _DATETIME.validate_python(value.strip())
        except ValidationError:
            raise InvalidInput(f"{field_name} is not a valid ISO-8601 timestamp")
    else:
        raise InvalidInput(f"{field_name} is required")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_optional_instant(value: Any, field_name: str) -> Optional[datetime]:
    if value is None:
        return None
    return parse_instant(value, field_name)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open [a_start, a_end) vs [b_start, b_end)."""
    return a_start < b_end and b_start < a_end


def is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def clamp_page(page: Any, limit: Any, max_limit: Optional[int] = None, default_limit: int = 20):
    """Return (page, limit, offset) with page >= 1 and 1 <= limit <= max_limit."""
    try:
        safe_limit = max(int(limit if limit is not None else default_limit), 1)
    except (TypeError, ValueError):
        safe_limit = default_limit
    if max_limit is not None:
        safe_limit = min(safe_limit, max_limit)
    try:
        safe_page = max(int(page if page is not None else 1), 1)
    except (TypeError, ValueError):
        safe_page = 1
    return safe_page, safe_limit, (safe_page - 1) * safe_limit
