import os

os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["ADMIN_API_KEY"] = "back-office-key"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from rental_engine.constants.rental_status import TermsCategory
from rental_engine.database import build_engine, create_db_and_tables, get_session
from rental_engine.main import app
from rental_engine.models import Content, RentalOrder, RentalOrderItem
from rental_engine.services import terms_gate


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so threads can share it."""
    engine = build_engine(f"sqlite:///{tmp_path / 'rentals.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    app.dependency_overrides[get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_content(session):
    def _make(**overrides):
        data = dict(
            title="Lahuta e Malcís",
            author="Gjergj Fishta",
            active=True,
            has_digital=True,
            has_hardcopy=True,
            has_audio=True,
            price=1000,
            digital_price=1000,
            audio_price=1000,
            currency="ALL",
            inventory=5,
            digital_file_url="https://cdn.example.com/books/lahuta.epub",
            audio_file_url="https://cdn.example.com/audio/lahuta.mp3",
        )
        data.update(overrides)
        content = Content(**data)
        session.add(content)
        session.commit()
        session.refresh(content)
        return content

    return _make


@pytest.fixture
def make_paid_item(session):
    def _make(buyer_id, content, status="PAID", is_rental=True):
        order = RentalOrder(buyer_id=buyer_id, status=status)
        session.add(order)
        session.flush()

        item = RentalOrderItem(
            order_id=order.id,
            content_id=content.id,
            unit_price=content.price,
            currency=content.currency,
            is_rental=is_rental,
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    return _make


@pytest.fixture
def publish_terms(session):
    def _publish(category=TermsCategory.EBOOK_RENTAL, version="1.0", effective_at=datetime(2020, 1, 1)):
        return terms_gate.publish_terms(
            session,
            category=category,
            title=f"Kushtet e qirasë {version}",
            version=version,
            content="Duke pranuar këto kushte ...",
            effective_at=effective_at,
        )

    return _publish


@pytest.fixture
def accept_terms(session):
    def _accept(buyer_id, terms, now=None):
        return terms_gate.record_acceptance(
            session,
            buyer_id=buyer_id,
            terms_id=terms.id,
            confirmed_read=True,
            confirmed_understood=True,
            now=now,
        )

    return _accept
