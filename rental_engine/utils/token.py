import calendar
import hmac
import secrets
from jose import jwt, JWTError
from datetime import datetime
from typing import Optional
from rental_engine.config import settings


def generate_access_token() -> str:
    """Opaque per-rental capability token (64 hex chars)."""
    return secrets.token_hex(32)


def tokens_match(expected: Optional[str], supplied: Optional[str]) -> bool:
    if not expected or not supplied:
        return False
    return hmac.compare_digest(expected, supplied)


def create_watermark(buyer_id: str, rental_id: int, issued_at: Optional[datetime] = None) -> str:
    """Signed tamper-evidence payload bound to the buyer and rental.

    Readers embed it in rendered pages; a leaked copy can be traced back
    with decode_watermark.
    """
    issued_at = issued_at or datetime.utcnow()
    to_encode = {
        "sub": buyer_id,
        "rid": rental_id,
        "iat": calendar.timegm(issued_at.utctimetuple()),
    }
    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm
    )


def decode_watermark(watermark: str):
    try:
        payload = jwt.decode(
            watermark,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
        return payload
    except JWTError:
        return None
