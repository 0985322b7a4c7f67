from datetime import datetime, timedelta

import pytest

from rental_engine.errors import AccessDenied
from rental_engine.services import audio_sessions, audit_log, rental_ledger

BUYER = "buyer-1"
T0 = datetime(2025, 3, 1, 10, 0, 0)


@pytest.fixture
def audio_rental(session, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)
    return rental_ledger.create_rental(
        session,
        buyer_id=BUYER,
        content_id=content.id,
        mode="audio",
        tier="TIME_LIMITED",
        order_item_id=item.id,
        now=T0,
    )


def test_play_time_accumulates(session, audio_rental):
    ids = dict(rental_id=audio_rental.id, buyer_id=BUYER, content_id=audio_rental.content_id)
    now = T0 + timedelta(hours=1)

    audio_sessions.start_listening(session, now=now, **ids)
    audio_sessions.record_play_time(session, seconds=600, now=now, **ids)
    rental = audio_sessions.record_play_time(session, seconds=420, now=now, **ids)

    assert rental.play_count == 1
    assert rental.total_play_seconds == 1020
    assert rental.last_played_at == T0 + timedelta(hours=1)
    assert rental.completed is False


def test_complete_listening(session, audio_rental):
    rental = audio_sessions.complete_listening(
        session,
        rental_id=audio_rental.id,
        buyer_id=BUYER,
        content_id=audio_rental.content_id,
        now=T0 + timedelta(days=2),
    )

    assert rental.completed is True
    kinds = [e.kind for e in audit_log.rental_events(session, audio_rental.id, "audio", BUYER)]
    assert kinds == ["RENTAL_CREATED", "LISTEN_COMPLETED"]


def test_negative_play_time(session, audio_rental):
    with pytest.raises(ValueError):
        audio_sessions.record_play_time(
            session,
            rental_id=audio_rental.id,
            buyer_id=BUYER,
            content_id=audio_rental.content_id,
            seconds=-1,
            now=T0,
        )


def test_listening_after_expiry_is_denied(session, audio_rental):
    with pytest.raises(AccessDenied):
        audio_sessions.start_listening(
            session,
            rental_id=audio_rental.id,
            buyer_id=BUYER,
            content_id=audio_rental.content_id,
            now=T0 + timedelta(days=8),
        )

    session.refresh(audio_rental)
    assert audio_rental.state == "EXPIRED"
    assert audio_rental.play_count == 0


def test_listening_to_someone_elses_rental_is_denied(session, audio_rental):
    with pytest.raises(AccessDenied):
        audio_sessions.start_listening(
            session,
            rental_id=audio_rental.id,
            buyer_id="buyer-2",
            content_id=audio_rental.content_id,
            now=T0 + timedelta(hours=1),
        )
