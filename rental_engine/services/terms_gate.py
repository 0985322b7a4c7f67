# rental_engine/services/terms_gate.py
"""
Terms gate.

Each rental category has at most one active terms version. A buyer passes
the gate for a category once they hold an acceptance of the current version
with both confirmations set, made on or after the version took effect.
Acceptances are append-only.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_, update
from sqlmodel import Session, select

from rental_engine.config import settings
from rental_engine.constants.rental_status import (
    DeliveryMode,
    TermsCategory,
    TERMS_CATEGORY_BY_MODE,
)
from rental_engine.errors import (
    NoActiveTerms,
    TermsNotConfirmed,
    TermsNotFound,
    TermsRequired,
)
from rental_engine.models.terms import TermsAcceptance, TermsVersion

logger = logging.getLogger(__name__)


@dataclass
class TermsStatus:
    accepted: bool
    requires_acceptance: bool
    terms: TermsVersion
    acceptance: Optional[TermsAcceptance] = None


def get_active_terms(
    session: Session,
    category: TermsCategory,
    now: Optional[datetime] = None,
) -> Optional[TermsVersion]:
    now = now or datetime.utcnow()
    return session.exec(
        select(TermsVersion)
        .where(TermsVersion.category == TermsCategory(category).value)
        .where(TermsVersion.is_active == True)  # noqa: E712
        .where(TermsVersion.effective_at <= now)
        .where(or_(TermsVersion.expires_at == None, TermsVersion.expires_at > now))  # noqa: E711
        .order_by(TermsVersion.effective_at.desc())
    ).first()


def _valid_acceptance(session: Session, buyer_id: str, terms: TermsVersion) -> Optional[TermsAcceptance]:
    return session.exec(
        select(TermsAcceptance)
        .where(TermsAcceptance.buyer_id == buyer_id)
        .where(TermsAcceptance.terms_id == terms.id)
        .where(TermsAcceptance.confirmed_read == True)  # noqa: E712
        .where(TermsAcceptance.confirmed_understood == True)  # noqa: E712
        .where(TermsAcceptance.accepted_at >= terms.effective_at)
        .order_by(TermsAcceptance.accepted_at.desc())
    ).first()


def check_acceptance(
    session: Session,
    buyer_id: str,
    category: TermsCategory,
    now: Optional[datetime] = None,
) -> TermsStatus:
    terms = get_active_terms(session, category, now)
    if not terms:
        raise NoActiveTerms(TermsCategory(category).value)

    acceptance = _valid_acceptance(session, buyer_id, terms)
    return TermsStatus(
        accepted=acceptance is not None,
        requires_acceptance=acceptance is None,
        terms=terms,
        acceptance=acceptance,
    )


def ensure_terms_accepted(
    session: Session,
    buyer_id: str,
    mode: DeliveryMode,
    now: Optional[datetime] = None,
):
    """Raise TermsRequired unless the buyer may rent in this mode."""
    category = TERMS_CATEGORY_BY_MODE[DeliveryMode(mode)]
    terms = get_active_terms(session, category, now)

    if not terms:
        if settings.terms_fail_closed:
            raise TermsRequired(category=category.value)
        logger.info(f"No active {category.value} terms, letting rental through")
        return

    if not _valid_acceptance(session, buyer_id, terms):
        raise TermsRequired(terms=terms, category=category.value)


def record_acceptance(
    session: Session,
    *,
    buyer_id: str,
    terms_id: int,
    confirmed_read: bool,
    confirmed_understood: bool,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    read_time_seconds: Optional[int] = None,
    scroll_depth: Optional[int] = None,
    now: Optional[datetime] = None,
) -> TermsAcceptance:
    if not confirmed_read or not confirmed_understood:
        raise TermsNotConfirmed()

    terms = session.get(TermsVersion, terms_id)
    if not terms:
        raise TermsNotFound(terms_id)

    acceptance = TermsAcceptance(
        buyer_id=buyer_id,
        terms_id=terms.id,
        accepted_at=now or datetime.utcnow(),
        confirmed_read=confirmed_read,
        confirmed_understood=confirmed_understood,
        ip_address=ip_address,
        user_agent=user_agent,
        read_time_seconds=read_time_seconds,
        scroll_depth=scroll_depth,
    )
    session.add(acceptance)
    session.commit()
    session.refresh(acceptance)

    logger.info(f"Buyer {buyer_id} accepted terms {terms.id} ({terms.category} v{terms.version})")
    return acceptance


def needs_reacceptance(
    session: Session,
    buyer_id: str,
    category: TermsCategory,
    now: Optional[datetime] = None,
):
    """
    Returns (needs_reacceptance, newer_terms). A buyer who never accepted
    anything in the category needs to; otherwise only when an active
    version took effect after their latest acceptance.
    """
    category = TermsCategory(category)
    terms = get_active_terms(session, category, now)

    last = session.exec(
        select(TermsAcceptance)
        .join(TermsVersion, TermsVersion.id == TermsAcceptance.terms_id)
        .where(TermsAcceptance.buyer_id == buyer_id)
        .where(TermsVersion.category == category.value)
        .order_by(TermsAcceptance.accepted_at.desc())
    ).first()

    if last is None:
        return True, terms

    if terms and terms.effective_at > last.accepted_at:
        return True, terms

    return False, None


def publish_terms(
    session: Session,
    *,
    category: TermsCategory,
    title: str,
    version: str,
    content: str,
    effective_at: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
) -> TermsVersion:
    """Retire the category's current version and activate a new one."""
    category = TermsCategory(category)

    session.exec(
        update(TermsVersion)
        .where(TermsVersion.category == category.value)
        .where(TermsVersion.is_active == True)  # noqa: E712
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )

    terms = TermsVersion(
        title=title,
        version=version,
        category=category.value,
        content=content,
        is_active=True,
        effective_at=effective_at or datetime.utcnow(),
        expires_at=expires_at,
    )
    session.add(terms)
    session.commit()
    session.refresh(terms)

    logger.info(f"Published {category.value} terms v{version} (id={terms.id})")
    return terms


def acceptance_history(session: Session, buyer_id: str) -> List[tuple]:
    """(acceptance, terms) pairs, newest first."""
    return session.exec(
        select(TermsAcceptance, TermsVersion)
        .join(TermsVersion, TermsVersion.id == TermsAcceptance.terms_id)
        .where(TermsAcceptance.buyer_id == buyer_id)
        .order_by(TermsAcceptance.accepted_at.desc())
    ).all()
