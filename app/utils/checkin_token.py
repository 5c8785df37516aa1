# app/utils/checkin_token.py
"""
Check-in integrity tokens for reservation QR codes.

The QR payload is JSON {"reservationId": ..., "hash": ...} where hash is
HMAC-SHA256 of the reservation id under RESERVATION_HASH_KEY. The payload is
also rendered as a PNG data URL so client apps can show it directly.
"""

import base64
import hashlib
import hmac
import io
import json
from typing import Optional

import qrcode
from qrcode.image.pil import PilImage

from app.config import settings

QR_BOX_SIZE = 10
QR_BORDER = 2


def hash_reservation_id(reservation_id, secret: Optional[str] = None) -> str:
    key = (secret or settings.RESERVATION_HASH_KEY).encode("utf-8")
    return hmac.new(key, str(reservation_id).encode("utf-8"), hashlib.sha256).hexdigest()


def verify_reservation_hash(reservation_id, token: Optional[str], secret: Optional[str] = None) -> bool:
    """Constant-time comparison against the expected token."""
    if not token or not isinstance(token, str):
        return False
    expected = hash_reservation_id(reservation_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), token.encode("utf-8"))


def generate_qr_data(reservation_id, secret: Optional[str] = None) -> str:
    return json.dumps({
        "reservationId": str(reservation_id),
        "hash": hash_reservation_id(reservation_id, secret),
    })


def generate_qr_image(payload: str) -> str:
    """Render `payload` as a QR code and return it as a data:image/png;base64 URL."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=QR_BOX_SIZE,
        border=QR_BORDER,
        image_factory=PilImage,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def parse_qr_data(payload: str) -> tuple:
    """Split a scanned payload back into (reservation_id, token). Raises ValueError if malformed."""
    data = json.loads(payload)
    if not isinstance(data, dict) or "reservationId" not in data or "hash" not in data:
        raise ValueError("QR payload must contain reservationId and hash")
    return data["reservationId"], data["hash"]
