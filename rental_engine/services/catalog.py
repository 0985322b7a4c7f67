# rental_engine/services/catalog.py

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from rental_engine.constants.rental_status import DeliveryMode
from rental_engine.models.content import Content


def get_content(session: Session, content_id: int) -> Optional[Content]:
    return session.get(Content, content_id)


def base_price(content: Content, mode: DeliveryMode) -> Optional[int]:
    if mode == DeliveryMode.EBOOK:
        return content.digital_price
    if mode == DeliveryMode.AUDIO:
        return content.audio_price
    return content.price


def content_locator(content: Content, mode: DeliveryMode) -> Optional[str]:
    if mode == DeliveryMode.EBOOK:
        return content.digital_file_url
    if mode == DeliveryMode.AUDIO:
        return content.audio_file_url
    return None


def is_rentable(content: Optional[Content], mode: DeliveryMode) -> bool:
    """Active, offered in this mode, priced, and for hardcopy in stock."""
    if content is None or not content.active:
        return False

    price = base_price(content, mode)
    if not price or price <= 0:
        return False

    if mode == DeliveryMode.EBOOK:
        return content.has_digital and bool(content.digital_file_url)
    if mode == DeliveryMode.AUDIO:
        return content.has_audio
    return content.has_hardcopy and content.in_stock


def reserve_copy(session: Session, content_id: int) -> bool:
    """Take one physical copy out of stock. False when none are left."""
    result = session.exec(
        update(Content)
        .where(Content.id == content_id)
        .where(Content.inventory > 0)
        .values(inventory=Content.inventory - 1, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def restock_copy(session: Session, content_id: int):
    session.exec(
        update(Content)
        .where(Content.id == content_id)
        .values(inventory=Content.inventory + 1, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
