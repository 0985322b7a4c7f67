# rental_engine/services/audio_sessions.py

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from rental_engine.constants.rental_status import AuditEventKind, DeliveryMode, RentalState
from rental_engine.errors import AccessDenied
from rental_engine.models.rental import AudioRental
from rental_engine.services import audit_log, rental_ledger

logger = logging.getLogger(__name__)


def _require_access(session: Session, rental_id: int, buyer_id: str, content_id: int, now: datetime):
    grant = rental_ledger.check_access(
        session,
        mode=DeliveryMode.AUDIO,
        buyer_id=buyer_id,
        content_id=content_id,
        rental_id=rental_id,
        now=now,
    )
    if grant is None:
        raise AccessDenied()
    return grant


def _bump(session: Session, rental_id: int, **values):
    session.exec(
        update(AudioRental)
        .where(AudioRental.id == rental_id)
        .where(AudioRental.state == RentalState.ACTIVE.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


def start_listening(
    session: Session,
    *,
    rental_id: int,
    buyer_id: str,
    content_id: int,
    now: Optional[datetime] = None,
) -> AudioRental:
    now = now or datetime.utcnow()
    _require_access(session, rental_id, buyer_id, content_id, now)

    _bump(session, rental_id, play_count=AudioRental.play_count + 1, last_played_at=now)
    audit_log.log_event(
        session,
        kind=AuditEventKind.PLAY_SESSION,
        rental_id=rental_id,
        mode=DeliveryMode.AUDIO,
        buyer_id=buyer_id,
        content_id=content_id,
        now=now,
    )
    session.commit()
    return session.get(AudioRental, rental_id)


def record_play_time(
    session: Session,
    *,
    rental_id: int,
    buyer_id: str,
    content_id: int,
    seconds: int,
    now: Optional[datetime] = None,
) -> AudioRental:
    if seconds < 0:
        raise ValueError("Play time cannot be negative")

    now = now or datetime.utcnow()
    _require_access(session, rental_id, buyer_id, content_id, now)

    _bump(
        session,
        rental_id,
        total_play_seconds=AudioRental.total_play_seconds + seconds,
        last_played_at=now,
    )
    audit_log.log_event(
        session,
        kind=AuditEventKind.PLAY_SESSION,
        rental_id=rental_id,
        mode=DeliveryMode.AUDIO,
        buyer_id=buyer_id,
        content_id=content_id,
        detail={"seconds": seconds},
        now=now,
    )
    session.commit()
    return session.get(AudioRental, rental_id)


def complete_listening(
    session: Session,
    *,
    rental_id: int,
    buyer_id: str,
    content_id: int,
    now: Optional[datetime] = None,
) -> AudioRental:
    now = now or datetime.utcnow()
    _require_access(session, rental_id, buyer_id, content_id, now)

    _bump(session, rental_id, completed=True, last_played_at=now)
    audit_log.log_event(
        session,
        kind=AuditEventKind.LISTEN_COMPLETED,
        rental_id=rental_id,
        mode=DeliveryMode.AUDIO,
        buyer_id=buyer_id,
        content_id=content_id,
        now=now,
    )
    session.commit()

    logger.info(f"Buyer {buyer_id} finished audio rental {rental_id}")
    return session.get(AudioRental, rental_id)
