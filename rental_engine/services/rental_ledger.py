# rental_engine/services/rental_ledger.py
"""
Rental ledger.

One ledger for all three delivery modes; the mode picks the table. Every
write that depends on a read runs in one transaction. The partial unique
index on (buyer_id, content_id) WHERE state = 'ACTIVE' is the final word on
double booking, the SELECT before insert only gives a friendlier error.

Ebook and audio rentals expire lazily: a rental past its end date stays
ACTIVE in storage until the next access check or creation for the pair
moves it to EXPIRED. Hardcopy rentals never expire on their own; an overdue
copy stays ACTIVE until it is returned and settled.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from rental_engine.constants.rental_status import (
    AuditEventKind,
    DeliveryMode,
    RentalState,
)
from rental_engine.database import is_unique_violation
from rental_engine.errors import (
    AlreadyRented,
    AlreadyReturned,
    ContentUnavailable,
    InvalidMode,
    NotPaid,
    RentalEngineError,
    RentalNotFound,
    ReturnRequired,
    ShippingAddressRequired,
)
from rental_engine.models.rental import RENTAL_MODELS, RentalBase
from rental_engine.services import audit_log, catalog, orders, pricing, terms_gate
from rental_engine.utils.token import create_watermark, generate_access_token, tokens_match

logger = logging.getLogger(__name__)

ORDER_ITEM_USED = "This rental purchase has already been used"


@dataclass
class AccessGrant:
    rental_id: int
    mode: DeliveryMode
    buyer_id: str
    content_id: int
    expires_at: datetime
    locator: Optional[str] = None
    watermark: Optional[str] = None
    access_count: Optional[int] = None


def rental_model(mode):
    try:
        return RENTAL_MODELS[DeliveryMode(mode)]
    except ValueError:
        raise InvalidMode(mode)


def _live_clause(model, now: datetime):
    # overdue hardcopy still holds the slot
    if model.mode == DeliveryMode.HARDCOPY:
        return model.state == RentalState.ACTIVE.value
    return (model.state == RentalState.ACTIVE.value) & (model.end_at > now)


def find_live_rental(
    session: Session,
    mode: DeliveryMode,
    buyer_id: str,
    content_id: int,
    now: Optional[datetime] = None,
) -> Optional[RentalBase]:
    now = now or datetime.utcnow()
    model = rental_model(mode)
    return session.exec(
        select(model)
        .where(model.buyer_id == buyer_id)
        .where(model.content_id == content_id)
        .where(_live_clause(model, now))
    ).first()


def expire_stale(
    session: Session,
    mode: DeliveryMode,
    now: datetime,
    buyer_id: Optional[str] = None,
    content_id: Optional[int] = None,
) -> int:
    """ACTIVE -> EXPIRED for ebook/audio rentals past their end. Caller commits."""
    model = rental_model(mode)
    if model.mode == DeliveryMode.HARDCOPY:
        return 0

    stmt = (
        update(model)
        .where(model.state == RentalState.ACTIVE.value)
        .where(model.end_at <= now)
    )
    if buyer_id is not None:
        stmt = stmt.where(model.buyer_id == buyer_id)
    if content_id is not None:
        stmt = stmt.where(model.content_id == content_id)

    result = session.exec(
        stmt.values(state=RentalState.EXPIRED.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def create_rental(
    session: Session,
    *,
    buyer_id: str,
    content_id: int,
    mode: DeliveryMode,
    tier: str,
    order_item_id: int,
    shipping_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RentalBase:
    now = now or datetime.utcnow()
    model = rental_model(mode)
    mode = model.mode

    # bad input before any lookup
    pricing.get_tier_policy(mode, tier)
    if mode == DeliveryMode.HARDCOPY and not (shipping_address or "").strip():
        raise ShippingAddressRequired()

    try:
        content = catalog.get_content(session, content_id)
        if not catalog.is_rentable(content, mode):
            raise ContentUnavailable()

        if not orders.get_paid_rental_order_item(session, order_item_id, buyer_id, content_id):
            raise NotPaid()

        if find_live_rental(session, mode, buyer_id, content_id, now):
            raise AlreadyRented()

        if orders.order_item_in_use(session, order_item_id):
            raise NotPaid(ORDER_ITEM_USED)

        terms_gate.ensure_terms_accepted(session, buyer_id, mode, now)

        quote = pricing.calculate_rental_price(catalog.base_price(content, mode), mode, tier)

        # free the unique slot held by a lapsed rental
        expire_stale(session, mode, now, buyer_id=buyer_id, content_id=content_id)

        if mode == DeliveryMode.HARDCOPY and not catalog.reserve_copy(session, content_id):
            raise ContentUnavailable("No copies left in stock")

        rental = model(
            buyer_id=buyer_id,
            content_id=content_id,
            order_item_id=order_item_id,
            tier=quote.tier.value,
            fee=quote.fee,
            currency=content.currency,
            start_at=now,
            end_at=now + quote.duration,
            state=RentalState.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        if mode == DeliveryMode.EBOOK:
            rental.access_token = generate_access_token()
        if mode == DeliveryMode.HARDCOPY:
            rental.guarantee = quote.guarantee
            rental.shipping_address = shipping_address.strip()

        session.add(rental)
        session.flush()

        if mode == DeliveryMode.EBOOK:
            rental.watermark = create_watermark(buyer_id, rental.id, now)

        audit_log.log_event(
            session,
            kind=AuditEventKind.RENTAL_CREATED,
            rental_id=rental.id,
            mode=mode,
            buyer_id=buyer_id,
            content_id=content_id,
            amount=quote.fee,
            currency=content.currency,
            detail={"tier": quote.tier.value, "end_at": rental.end_at.isoformat()},
            now=now,
        )
        if mode == DeliveryMode.HARDCOPY:
            audit_log.log_event(
                session,
                kind=AuditEventKind.GUARANTEE_CHARGED,
                rental_id=rental.id,
                mode=mode,
                buyer_id=buyer_id,
                content_id=content_id,
                amount=quote.guarantee,
                currency=content.currency,
                now=now,
            )

        session.commit()

    except IntegrityError as exc:
        session.rollback()
        if is_unique_violation(exc, "order_item"):
            logger.warning(f"Order item {order_item_id} was spent by a concurrent rental")
            raise NotPaid(ORDER_ITEM_USED)
        if is_unique_violation(exc):
            logger.warning(f"Concurrent {mode.value} rental for buyer {buyer_id} content {content_id} lost the race")
            raise AlreadyRented()
        raise

    except RentalEngineError as exc:
        session.rollback()
        logger.warning(f"{mode.value} rental refused for buyer {buyer_id} content {content_id}: {exc.code}")
        raise

    session.refresh(rental)
    logger.info(
        f"Created {mode.value} rental {rental.id} for buyer {buyer_id} "
        f"content {content_id} tier {rental.tier} until {rental.end_at}"
    )
    return rental


def check_access(
    session: Session,
    *,
    mode: DeliveryMode,
    buyer_id: str,
    content_id: int,
    rental_id: int,
    token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[AccessGrant]:
    """
    Validate a rental for use right now. Returns None on any mismatch and
    never says which check failed.
    """
    now = now or datetime.utcnow()
    model = rental_model(mode)
    mode = model.mode

    rental = session.get(model, rental_id)
    if rental is None or rental.buyer_id != buyer_id or rental.content_id != content_id:
        return None

    if mode == DeliveryMode.EBOOK and not tokens_match(rental.access_token, token):
        logger.warning(f"Token mismatch on ebook rental {rental_id}")
        return None

    if not rental.is_active:
        return None

    # revocation logged earlier but never applied
    pending = audit_log.pending_termination(session, mode, rental.id, buyer_id, content_id)
    if pending is not None:
        audit_log.apply_terminating_event(
            session,
            mode=mode,
            rental_id=rental.id,
            buyer_id=buyer_id,
            content_id=content_id,
            kind=pending.kind,
            now=now,
        )
        session.commit()
        logger.warning(f"Applied pending {pending.kind} to {mode.value} rental {rental_id}")
        return None

    if now >= rental.end_at:
        if mode != DeliveryMode.HARDCOPY:
            session.exec(
                update(model)
                .where(model.id == rental.id)
                .where(model.state == RentalState.ACTIVE.value)
                .values(state=RentalState.EXPIRED.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            logger.info(f"{mode.value} rental {rental_id} expired")
        return None

    if mode == DeliveryMode.EBOOK:
        result = session.exec(
            update(model)
            .where(model.id == rental.id)
            .where(model.state == RentalState.ACTIVE.value)
            .values(access_count=model.access_count + 1, last_access_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.rollback()
            return None
        session.commit()
        session.refresh(rental)

    content = catalog.get_content(session, content_id)
    return AccessGrant(
        rental_id=rental.id,
        mode=mode,
        buyer_id=buyer_id,
        content_id=content_id,
        expires_at=rental.end_at,
        locator=catalog.content_locator(content, mode) if content else None,
        watermark=getattr(rental, "watermark", None),
        access_count=getattr(rental, "access_count", None),
    )


def get_rental(session: Session, mode: DeliveryMode, rental_id: int, buyer_id: str) -> RentalBase:
    rental = session.get(rental_model(mode), rental_id)
    if not rental or rental.buyer_id != buyer_id:
        raise RentalNotFound()
    return rental


def end_rental(
    session: Session,
    *,
    mode: DeliveryMode,
    rental_id: int,
    buyer_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RentalBase:
    """Buyer gives up a digital rental before its end date. A hardcopy is
    only finished by returning it."""
    rental = get_rental(session, mode, rental_id, buyer_id)
    if rental.mode == DeliveryMode.HARDCOPY:
        raise ReturnRequired()
    if not rental.can_transition_to(RentalState.REVOKED):
        raise AlreadyReturned()

    audit_log.report_event(
        session,
        rental_id=rental.id,
        mode=rental.mode,
        buyer_id=buyer_id,
        content_id=rental.content_id,
        kind=AuditEventKind.RENTAL_END,
        detail={"reason": reason or "ended_by_buyer"},
        now=now,
    )
    session.refresh(rental)
    return rental


def record_shipment(
    session: Session,
    *,
    rental_id: int,
    tracking_number: str,
    now: Optional[datetime] = None,
) -> RentalBase:
    """Outbound tracking for a hardcopy. Only reachable from the back-office routes."""
    now = now or datetime.utcnow()
    model = rental_model(DeliveryMode.HARDCOPY)

    rental = session.get(model, rental_id)
    if not rental:
        raise RentalNotFound()
    if not rental.is_active:
        raise AlreadyReturned()

    rental.tracking_number = tracking_number
    rental.updated_at = now
    session.add(rental)

    audit_log.log_event(
        session,
        kind=AuditEventKind.SHIPMENT_DISPATCHED,
        rental_id=rental.id,
        mode=DeliveryMode.HARDCOPY,
        buyer_id=rental.buyer_id,
        content_id=rental.content_id,
        detail={"tracking_number": tracking_number},
        now=now,
    )
    session.commit()
    session.refresh(rental)

    logger.info(f"Hardcopy rental {rental_id} shipped, tracking {tracking_number}")
    return rental


def active_rentals(
    session: Session,
    buyer_id: str,
    now: Optional[datetime] = None,
) -> List[RentalBase]:
    """Rentals the buyer currently holds, across every mode."""
    now = now or datetime.utcnow()
    rentals = []
    for model in RENTAL_MODELS.values():
        rentals.extend(
            session.exec(
                select(model)
                .where(model.buyer_id == buyer_id)
                .where(_live_clause(model, now))
            ).all()
        )
    return sorted(rentals, key=lambda r: r.start_at, reverse=True)


def rental_history(
    session: Session,
    buyer_id: str,
    mode: Optional[DeliveryMode] = None,
) -> List[RentalBase]:
    models = [rental_model(mode)] if mode else list(RENTAL_MODELS.values())
    rentals = []
    for model in models:
        rentals.extend(
            session.exec(select(model).where(model.buyer_id == buyer_id)).all()
        )
    return sorted(rentals, key=lambda r: r.created_at, reverse=True)


def overdue_hardcopy(session: Session, now: Optional[datetime] = None) -> List[RentalBase]:
    """ACTIVE hardcopy rentals past their end date, oldest first."""
    now = now or datetime.utcnow()
    model = rental_model(DeliveryMode.HARDCOPY)
    return session.exec(
        select(model)
        .where(model.state == RentalState.ACTIVE.value)
        .where(model.end_at <= now)
        .order_by(model.end_at)
    ).all()
