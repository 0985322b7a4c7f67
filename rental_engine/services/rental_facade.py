# rental_engine/services/rental_facade.py
"""
Read-only views across the ledger, pricing and subscriptions for the
storefront: what can be rented, what the buyer already holds, and which
mode to suggest.
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Session

from rental_engine.config import settings
from rental_engine.constants.rental_status import DeliveryMode
from rental_engine.models.content import Content
from rental_engine.services import catalog, pricing, rental_ledger, subscription_throttle


def rental_availability(content: Optional[Content]) -> dict:
    availability = {}
    for mode in DeliveryMode:
        available = catalog.is_rentable(content, mode)
        availability[mode.value] = {
            "available": available,
            "pricing": pricing.pricing_options(catalog.base_price(content, mode), mode) if available else None,
        }
    return availability


def rental_info(
    session: Session,
    content_id: int,
    buyer_id: str,
    now: Optional[datetime] = None,
) -> Optional[dict]:
    content = catalog.get_content(session, content_id)
    if not content:
        return None

    active = {}
    for mode in DeliveryMode:
        rental = rental_ledger.find_live_rental(session, mode, buyer_id, content_id, now)
        active[mode.value] = rental

    return {
        "content": content,
        "availability": rental_availability(content),
        "active_rentals": active,
    }


def has_any_access(
    session: Session,
    buyer_id: str,
    content_id: int,
    now: Optional[datetime] = None,
) -> bool:
    now = now or datetime.utcnow()
    for mode in DeliveryMode:
        rental = rental_ledger.find_live_rental(session, mode, buyer_id, content_id, now)
        if rental and rental.is_live(now):
            return True
    return subscription_throttle.check_access(session, buyer_id, content_id, now).has_access


def can_be_rented(content: Optional[Content]) -> bool:
    return any(catalog.is_rentable(content, mode) for mode in DeliveryMode)


def active_rentals(session: Session, buyer_id: str, now: Optional[datetime] = None):
    return rental_ledger.active_rentals(session, buyer_id, now)


def rental_history(session: Session, buyer_id: str, mode: Optional[DeliveryMode] = None):
    return rental_ledger.rental_history(session, buyer_id, mode)


def recommend_delivery_mode(content: Optional[Content]) -> Optional[DeliveryMode]:
    """
    Suggest ebook or hardcopy. When both can be rented, the last few
    physical copies are pushed first; otherwise ebook.
    """
    ebook = catalog.is_rentable(content, DeliveryMode.EBOOK)
    hardcopy = catalog.is_rentable(content, DeliveryMode.HARDCOPY)

    if ebook and hardcopy:
        if content.inventory <= settings.low_inventory_threshold:
            return DeliveryMode.HARDCOPY
        return DeliveryMode.EBOOK
    if ebook:
        return DeliveryMode.EBOOK
    if hardcopy:
        return DeliveryMode.HARDCOPY
    return None
