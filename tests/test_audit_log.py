from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from rental_engine.errors import AuditLogImmutableError, EventNotReportable, ReturnRequired
from rental_engine.models import AuditEvent
from rental_engine.services import audit_log, rental_ledger

BUYER = "buyer-1"
T0 = datetime(2025, 3, 1, 10, 0, 0)


@pytest.fixture
def ebook_rental(session, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)
    return rental_ledger.create_rental(
        session,
        buyer_id=BUYER,
        content_id=content.id,
        mode="ebook",
        tier="TIME_LIMITED",
        order_item_id=item.id,
        now=T0,
    )


def report(session, rental, kind, buyer_id=BUYER, now=T0 + timedelta(hours=1)):
    return audit_log.report_event(
        session,
        rental_id=rental.id,
        mode="ebook",
        buyer_id=buyer_id,
        content_id=rental.content_id,
        kind=kind,
        detail={"source": "reader"},
        now=now,
    )


def test_security_violation_revokes(session, ebook_rental):
    event = report(session, ebook_rental, "SECURITY_VIOLATION")

    assert event.kind == "SECURITY_VIOLATION"
    assert event.delivery_mode == "ebook"
    session.refresh(ebook_rental)
    assert ebook_rental.state == "REVOKED"
    assert ebook_rental.revoked_reason == "SECURITY_VIOLATION"
    assert ebook_rental.end_at == T0 + timedelta(days=7)


def test_repeated_violation_is_harmless(session, ebook_rental):
    report(session, ebook_rental, "SUSPICIOUS_ACTIVITY")
    report(session, ebook_rental, "SECURITY_VIOLATION", now=T0 + timedelta(hours=2))

    session.refresh(ebook_rental)
    assert ebook_rental.state == "REVOKED"
    assert ebook_rental.revoked_reason == "SUSPICIOUS_ACTIVITY"

    kinds = [e.kind for e in audit_log.rental_events(session, ebook_rental.id, "ebook", BUYER)]
    assert kinds == ["RENTAL_CREATED", "SUSPICIOUS_ACTIVITY", "SECURITY_VIOLATION"]


def test_report_for_another_buyer_leaves_rental_alone(session, ebook_rental):
    report(session, ebook_rental, "SECURITY_VIOLATION", buyer_id="buyer-2")

    session.refresh(ebook_rental)
    assert ebook_rental.state == "ACTIVE"

    grant = rental_ledger.check_access(
        session,
        mode="ebook",
        buyer_id=BUYER,
        content_id=ebook_rental.content_id,
        rental_id=ebook_rental.id,
        token=ebook_rental.access_token,
        now=T0 + timedelta(hours=2),
    )
    assert grant is not None


def test_rental_end_cuts_period_short(session, ebook_rental):
    report(session, ebook_rental, "RENTAL_END", now=T0 + timedelta(hours=5))

    session.refresh(ebook_rental)
    assert ebook_rental.state == "REVOKED"
    assert ebook_rental.end_at == T0 + timedelta(hours=5)


@pytest.mark.parametrize("kind", ["PLAY_SESSION", "GUARANTEE_REFUNDED", "RENTAL_COMPLETED"])
def test_only_terminating_events_can_be_reported(session, ebook_rental, kind):
    with pytest.raises(EventNotReportable):
        report(session, ebook_rental, kind)

    session.refresh(ebook_rental)
    assert ebook_rental.state == "ACTIVE"
    kinds = [e.kind for e in audit_log.rental_events(session, ebook_rental.id, "ebook", BUYER)]
    assert kinds == ["RENTAL_CREATED"]


@pytest.fixture
def hardcopy_rental(session, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)
    return rental_ledger.create_rental(
        session,
        buyer_id=BUYER,
        content_id=content.id,
        mode="hardcopy",
        tier="SHORT_TERM",
        order_item_id=item.id,
        shipping_address="Rruga e Kavajës 40, Tiranë",
        now=T0,
    )


def test_rental_end_is_refused_for_hardcopy(session, hardcopy_rental):
    with pytest.raises(ReturnRequired):
        audit_log.report_event(
            session,
            rental_id=hardcopy_rental.id,
            mode="hardcopy",
            buyer_id=BUYER,
            content_id=hardcopy_rental.content_id,
            kind="RENTAL_END",
            now=T0 + timedelta(hours=1),
        )

    session.refresh(hardcopy_rental)
    assert hardcopy_rental.state == "ACTIVE"
    assert audit_log.pending_termination(
        session, "hardcopy", hardcopy_rental.id, BUYER, hardcopy_rental.content_id
    ) is None


def test_stray_rental_end_never_revokes_hardcopy(session, hardcopy_rental):
    changed = audit_log.apply_terminating_event(
        session,
        mode="hardcopy",
        rental_id=hardcopy_rental.id,
        buyer_id=BUYER,
        content_id=hardcopy_rental.content_id,
        kind="RENTAL_END",
    )

    assert changed is False


def test_failed_revocation_is_retried_on_access(session, ebook_rental, monkeypatch):
    def broken(*args, **kwargs):
        raise SQLAlchemyError("connection dropped")

    monkeypatch.setattr(audit_log, "apply_terminating_event", broken)
    report(session, ebook_rental, "SECURITY_VIOLATION")
    monkeypatch.undo()

    # the event is on record even though the rental was not touched
    session.refresh(ebook_rental)
    assert ebook_rental.state == "ACTIVE"
    assert audit_log.pending_termination(session, "ebook", ebook_rental.id, BUYER, ebook_rental.content_id)

    grant = rental_ledger.check_access(
        session,
        mode="ebook",
        buyer_id=BUYER,
        content_id=ebook_rental.content_id,
        rental_id=ebook_rental.id,
        token=ebook_rental.access_token,
        now=T0 + timedelta(hours=2),
    )

    assert grant is None
    session.refresh(ebook_rental)
    assert ebook_rental.state == "REVOKED"
    assert ebook_rental.revoked_reason == "SECURITY_VIOLATION"


def test_log_event_is_part_of_callers_transaction(session, ebook_rental):
    audit_log.log_event(
        session,
        kind="SHIPMENT_DISPATCHED",
        rental_id=ebook_rental.id,
        mode="ebook",
        buyer_id=BUYER,
        content_id=ebook_rental.content_id,
    )
    session.rollback()

    kinds = [e.kind for e in audit_log.rental_events(session, ebook_rental.id, "ebook", BUYER)]
    assert kinds == ["RENTAL_CREATED"]


def test_events_cannot_be_updated(session, ebook_rental):
    event = session.exec(select(AuditEvent)).first()
    event.amount = 1

    with pytest.raises(AuditLogImmutableError):
        session.commit()
    session.rollback()


def test_events_cannot_be_deleted(session, ebook_rental):
    event = session.exec(select(AuditEvent)).first()
    session.delete(event)

    with pytest.raises(AuditLogImmutableError):
        session.commit()
    session.rollback()


def test_rental_events_are_scoped_to_mode(session, ebook_rental):
    assert audit_log.rental_events(session, ebook_rental.id, "audio", BUYER) == []
    assert audit_log.rental_events(session, ebook_rental.id, "ebook", "buyer-2") == []
