# rental_engine/services/orders.py

from typing import Optional

from sqlmodel import Session, select

from rental_engine.constants.order_status import PAID_ORDER_STATUSES
from rental_engine.models.order import RentalOrder, RentalOrderItem
from rental_engine.models.rental import RENTAL_MODELS


def get_paid_rental_order_item(
    session: Session,
    order_item_id: int,
    buyer_id: str,
    content_id: int,
) -> Optional[RentalOrderItem]:
    """
    The order line backing a rental, if it belongs to this buyer and
    content, is flagged as a rental, and its order has been paid.
    """
    return session.exec(
        select(RentalOrderItem)
        .join(RentalOrder, RentalOrder.id == RentalOrderItem.order_id)
        .where(RentalOrderItem.id == order_item_id)
        .where(RentalOrderItem.content_id == content_id)
        .where(RentalOrderItem.is_rental == True)  # noqa: E712
        .where(RentalOrder.buyer_id == buyer_id)
        .where(RentalOrder.status.in_(PAID_ORDER_STATUSES))
    ).first()


def order_item_in_use(session: Session, order_item_id: int) -> bool:
    """True once a rental in any mode has been issued against the line."""
    for model in RENTAL_MODELS.values():
        used = session.exec(select(model.id).where(model.order_item_id == order_item_id)).first()
        if used is not None:
            return True
    return False
