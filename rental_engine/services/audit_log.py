# rental_engine/services/audit_log.py

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from rental_engine.constants.rental_status import (
    AuditEventKind,
    DeliveryMode,
    RentalState,
    REPORTABLE_EVENTS,
    terminating_events_for,
)
from rental_engine.errors import EventNotReportable, ReturnRequired
from rental_engine.models.audit_event import AuditEvent
from rental_engine.models.rental import RENTAL_MODELS

logger = logging.getLogger(__name__)


def log_event(
    session: Session,
    *,
    kind: AuditEventKind,
    buyer_id: str,
    content_id: int,
    rental_id: Optional[int] = None,
    mode: Optional[DeliveryMode] = None,
    user_subscription_id: Optional[int] = None,
    amount: Optional[int] = None,
    currency: Optional[str] = None,
    detail: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> AuditEvent:
    """
    Append-only event log for rental and subscription lifecycles.
    Added to the caller's transaction; the caller commits.
    """

    event = AuditEvent(
        rental_id=rental_id,
        delivery_mode=DeliveryMode(mode).value if mode else None,
        user_subscription_id=user_subscription_id,
        buyer_id=buyer_id,
        content_id=content_id,
        kind=AuditEventKind(kind).value,
        amount=amount,
        currency=currency,
        detail=detail,
        created_at=now or datetime.utcnow(),
    )

    session.add(event)
    return event


def apply_terminating_event(
    session: Session,
    *,
    mode: DeliveryMode,
    rental_id: int,
    buyer_id: str,
    content_id: int,
    kind: AuditEventKind,
    now: Optional[datetime] = None,
) -> bool:
    """
    Move the matching ACTIVE rental to REVOKED. RENTAL_END also cuts the
    rental period short. Terminal or foreign rentals are left alone, so
    this is safe to repeat. Returns True when a row changed.
    """
    now = now or datetime.utcnow()
    kind = AuditEventKind(kind)
    if kind not in terminating_events_for(mode):
        return False
    model = RENTAL_MODELS[DeliveryMode(mode)]

    values = {
        "state": RentalState.REVOKED.value,
        "revoked_reason": kind.value,
        "updated_at": now,
    }
    if kind == AuditEventKind.RENTAL_END:
        values["end_at"] = now

    result = session.exec(
        update(model)
        .where(model.id == rental_id)
        .where(model.buyer_id == buyer_id)
        .where(model.content_id == content_id)
        .where(model.state == RentalState.ACTIVE.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def report_event(
    session: Session,
    *,
    rental_id: int,
    mode: DeliveryMode,
    buyer_id: str,
    content_id: int,
    kind: AuditEventKind,
    detail: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> AuditEvent:
    """
    Record an event pushed by a client or reader, then act on it.

    Only revocation and early-end kinds are accepted, and a hardcopy cannot
    be ended early. The event is committed before any state change. If revoking the rental
    fails the error is logged and swallowed here; check_access picks the
    event up again on the next attempt.
    """
    now = now or datetime.utcnow()
    kind = AuditEventKind(kind)
    if kind not in REPORTABLE_EVENTS:
        raise EventNotReportable(kind.value)
    if kind not in terminating_events_for(mode):
        raise ReturnRequired()

    event = log_event(
        session,
        kind=kind,
        rental_id=rental_id,
        mode=mode,
        buyer_id=buyer_id,
        content_id=content_id,
        detail=detail,
        now=now,
    )
    session.commit()
    session.refresh(event)

    try:
        changed = apply_terminating_event(
            session,
            mode=mode,
            rental_id=rental_id,
            buyer_id=buyer_id,
            content_id=content_id,
            kind=kind,
            now=now,
        )
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(
            f"Failed to apply {kind.value} to {DeliveryMode(mode).value} rental {rental_id}; "
            f"will retry on next access check"
        )
        return event

    if changed:
        logger.warning(f"{DeliveryMode(mode).value} rental {rental_id} revoked by {kind.value}")
    return event


def pending_termination(
    session: Session,
    mode: DeliveryMode,
    rental_id: int,
    buyer_id: str,
    content_id: int,
) -> Optional[AuditEvent]:
    """Most recent terminating event logged against a rental, if any."""
    return session.exec(
        select(AuditEvent)
        .where(AuditEvent.delivery_mode == DeliveryMode(mode).value)
        .where(AuditEvent.rental_id == rental_id)
        .where(AuditEvent.buyer_id == buyer_id)
        .where(AuditEvent.content_id == content_id)
        .where(AuditEvent.kind.in_([k.value for k in terminating_events_for(mode)]))
        .order_by(AuditEvent.created_at.desc())
    ).first()


def rental_events(
    session: Session,
    rental_id: int,
    mode: DeliveryMode,
    buyer_id: str,
) -> List[AuditEvent]:
    return session.exec(
        select(AuditEvent)
        .where(AuditEvent.delivery_mode == DeliveryMode(mode).value)
        .where(AuditEvent.rental_id == rental_id)
        .where(AuditEvent.buyer_id == buyer_id)
        .order_by(AuditEvent.created_at)
    ).all()
