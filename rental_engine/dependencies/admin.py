import hmac
from typing import Optional
from fastapi import Header, HTTPException, status

from rental_engine.config import settings


def require_admin(x_admin_key: Optional[str] = Header(None)):
    if not settings.admin_api_key or not x_admin_key or not hmac.compare_digest(
        x_admin_key.encode(), settings.admin_api_key.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return x_admin_key
