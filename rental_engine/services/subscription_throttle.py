# rental_engine/services/subscription_throttle.py
"""
Subscription access with a concurrency cap.

A buyer holds at most one active enrolment. Each open reading session
counts against the plan's max_concurrent; acquire and release move the
counter with conditional UPDATEs so it stays within 0..max_concurrent
however calls interleave.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from rental_engine.constants.rental_status import AuditEventKind
from rental_engine.errors import AccessDenied, CapacityExceeded, ContentUnavailable, SubscriptionNotFound
from rental_engine.models.content import Content
from rental_engine.models.subscription import Subscription, SubscriptionContent, UserSubscription
from rental_engine.services import audit_log

logger = logging.getLogger(__name__)


@dataclass
class SubscriptionAccess:
    has_access: bool
    can_acquire_more: bool
    current: int
    max_concurrent: int
    subscription: Optional[UserSubscription] = None


def get_buyer_subscription(
    session: Session,
    buyer_id: str,
    now: Optional[datetime] = None,
) -> Optional[UserSubscription]:
    now = now or datetime.utcnow()
    return session.exec(
        select(UserSubscription)
        .where(UserSubscription.buyer_id == buyer_id)
        .where(UserSubscription.is_active == True)  # noqa: E712
        .where(UserSubscription.end_at > now)
    ).first()


def in_catalog(session: Session, subscription_id: int, content_id: int) -> bool:
    return session.exec(
        select(SubscriptionContent)
        .where(SubscriptionContent.subscription_id == subscription_id)
        .where(SubscriptionContent.content_id == content_id)
    ).first() is not None


def check_access(
    session: Session,
    buyer_id: str,
    content_id: int,
    now: Optional[datetime] = None,
) -> SubscriptionAccess:
    enrolment = get_buyer_subscription(session, buyer_id, now)
    if not enrolment:
        return SubscriptionAccess(has_access=False, can_acquire_more=False, current=0, max_concurrent=0)

    max_concurrent = enrolment.subscription.max_concurrent
    return SubscriptionAccess(
        has_access=in_catalog(session, enrolment.subscription_id, content_id),
        can_acquire_more=enrolment.current_access < max_concurrent,
        current=enrolment.current_access,
        max_concurrent=max_concurrent,
        subscription=enrolment,
    )


def acquire(
    session: Session,
    *,
    buyer_id: str,
    content_id: int,
    now: Optional[datetime] = None,
) -> UserSubscription:
    """Open a reading session. Raises CapacityExceeded at the cap."""
    now = now or datetime.utcnow()

    enrolment = get_buyer_subscription(session, buyer_id, now)
    if not enrolment or not in_catalog(session, enrolment.subscription_id, content_id):
        session.rollback()
        logger.warning(f"Subscription access denied for buyer {buyer_id} content {content_id}")
        raise AccessDenied()

    max_concurrent = enrolment.subscription.max_concurrent

    result = session.exec(
        update(UserSubscription)
        .where(UserSubscription.id == enrolment.id)
        .where(UserSubscription.is_active == True)  # noqa: E712
        .where(UserSubscription.current_access < max_concurrent)
        .values(
            current_access=UserSubscription.current_access + 1,
            total_access=UserSubscription.total_access + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        session.refresh(enrolment)
        logger.warning(
            f"Buyer {buyer_id} at concurrency cap "
            f"{enrolment.current_access}/{max_concurrent}"
        )
        raise CapacityExceeded(enrolment.current_access, max_concurrent)

    audit_log.log_event(
        session,
        kind=AuditEventKind.ACCESS_START,
        user_subscription_id=enrolment.id,
        buyer_id=buyer_id,
        content_id=content_id,
        now=now,
    )
    session.commit()
    session.refresh(enrolment)
    return enrolment


def release(
    session: Session,
    *,
    buyer_id: str,
    content_id: int,
    now: Optional[datetime] = None,
) -> UserSubscription:
    """Close a reading session. A counter already at zero stays there."""
    now = now or datetime.utcnow()

    enrolment = get_buyer_subscription(session, buyer_id, now)
    if not enrolment:
        session.rollback()
        raise SubscriptionNotFound("No active subscription")

    result = session.exec(
        update(UserSubscription)
        .where(UserSubscription.id == enrolment.id)
        .where(UserSubscription.current_access > 0)
        .values(current_access=UserSubscription.current_access - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        audit_log.log_event(
            session,
            kind=AuditEventKind.ACCESS_END,
            user_subscription_id=enrolment.id,
            buyer_id=buyer_id,
            content_id=content_id,
            now=now,
        )
    session.commit()
    session.refresh(enrolment)
    return enrolment


def create_subscription(
    session: Session,
    *,
    name: str,
    price: int,
    max_concurrent: int,
    description: Optional[str] = None,
    currency: str = "ALL",
    duration_days: int = 30,
    includes_ebooks: bool = True,
    includes_hardcopy: bool = False,
    featured: bool = False,
    content_ids: Iterable[int] = (),
) -> Subscription:
    if max_concurrent <= 0:
        raise ValueError("max_concurrent must be positive")
    if price < 0:
        raise ValueError("price cannot be negative")

    plan = Subscription(
        name=name,
        description=description,
        price=price,
        currency=currency,
        duration_days=duration_days,
        max_concurrent=max_concurrent,
        includes_ebooks=includes_ebooks,
        includes_hardcopy=includes_hardcopy,
        featured=featured,
    )
    session.add(plan)
    session.flush()

    for content_id in set(content_ids):
        session.add(SubscriptionContent(subscription_id=plan.id, content_id=content_id))

    session.commit()
    session.refresh(plan)

    logger.info(f"Created subscription plan {plan.id} '{name}' (max {max_concurrent} concurrent)")
    return plan


def list_active_subscriptions(session: Session) -> List[Subscription]:
    return session.exec(
        select(Subscription)
        .where(Subscription.is_active == True)  # noqa: E712
        .order_by(Subscription.featured.desc(), Subscription.price)
    ).all()


def subscribe_buyer(
    session: Session,
    *,
    buyer_id: str,
    subscription_id: int,
    auto_renew: bool = True,
    now: Optional[datetime] = None,
) -> UserSubscription:
    """Enrol a buyer, ending whatever enrolment they had before."""
    now = now or datetime.utcnow()

    plan = session.get(Subscription, subscription_id)
    if not plan or not plan.is_active:
        raise SubscriptionNotFound()

    session.exec(
        update(UserSubscription)
        .where(UserSubscription.buyer_id == buyer_id)
        .where(UserSubscription.is_active == True)  # noqa: E712
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )

    enrolment = UserSubscription(
        buyer_id=buyer_id,
        subscription_id=plan.id,
        start_at=now,
        end_at=now + timedelta(days=plan.duration_days),
        is_active=True,
        auto_renew=auto_renew,
        created_at=now,
    )
    session.add(enrolment)
    session.commit()
    session.refresh(enrolment)

    logger.info(f"Buyer {buyer_id} subscribed to plan {plan.id} until {enrolment.end_at}")
    return enrolment


def add_content(session: Session, subscription_id: int, content_id: int) -> SubscriptionContent:
    if not session.get(Subscription, subscription_id):
        raise SubscriptionNotFound()
    if not session.get(Content, content_id):
        raise ContentUnavailable("Content not found")

    existing = session.exec(
        select(SubscriptionContent)
        .where(SubscriptionContent.subscription_id == subscription_id)
        .where(SubscriptionContent.content_id == content_id)
    ).first()
    if existing:
        return existing

    entry = SubscriptionContent(subscription_id=subscription_id, content_id=content_id)
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return entry


def remove_content(session: Session, subscription_id: int, content_id: int) -> bool:
    entry = session.exec(
        select(SubscriptionContent)
        .where(SubscriptionContent.subscription_id == subscription_id)
        .where(SubscriptionContent.content_id == content_id)
    ).first()
    if not entry:
        return False

    session.delete(entry)
    session.commit()
    return True


def subscription_catalog(session: Session, subscription_id: int) -> List[Content]:
    if not session.get(Subscription, subscription_id):
        raise SubscriptionNotFound()

    return session.exec(
        select(Content)
        .join(SubscriptionContent, SubscriptionContent.content_id == Content.id)
        .where(SubscriptionContent.subscription_id == subscription_id)
        .where(Content.active == True)  # noqa: E712
        .order_by(Content.title)
    ).all()
