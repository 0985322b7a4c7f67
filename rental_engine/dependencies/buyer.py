from typing import Optional
from fastapi import Header, HTTPException, status


def get_buyer_id(x_buyer_id: Optional[str] = Header(None)) -> str:
    """Opaque buyer identity supplied by the calling service."""
    if not x_buyer_id or not x_buyer_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Buyer identity required",
        )
    return x_buyer_id.strip()
