from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from rental_engine.database import get_session
from rental_engine.dependencies.buyer import get_buyer_id
from rental_engine.schemas.subscription_schemas import (
    SubscribeRequest,
    SubscriptionAccessRead,
    SubscriptionAccessRequest,
    SubscriptionCreate,
    SubscriptionRead,
    UserSubscriptionRead,
)
from rental_engine.services import subscription_throttle


router = APIRouter()


@router.get("", response_model=list[SubscriptionRead])
def list_subscriptions(session: Session = Depends(get_session)):
    return subscription_throttle.list_active_subscriptions(session)


@router.post("", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
def create_subscription(data: SubscriptionCreate, session: Session = Depends(get_session)):
    return subscription_throttle.create_subscription(session, **data.model_dump())


@router.get("/my", response_model=UserSubscriptionRead)
def my_subscription(
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    enrolment = subscription_throttle.get_buyer_subscription(session, buyer_id)
    if not enrolment:
        raise HTTPException(404, "No active subscription")
    return enrolment


@router.get("/access", response_model=SubscriptionAccessRead)
def check_access(
    content_id: int,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    access = subscription_throttle.check_access(session, buyer_id, content_id)
    return SubscriptionAccessRead(
        has_access=access.has_access,
        can_acquire_more=access.can_acquire_more,
        current=access.current,
        max_concurrent=access.max_concurrent,
        subscription=UserSubscriptionRead.model_validate(access.subscription) if access.subscription else None,
    )


@router.post("/acquire", response_model=UserSubscriptionRead)
def acquire(
    data: SubscriptionAccessRequest,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    return subscription_throttle.acquire(session, buyer_id=buyer_id, content_id=data.content_id)


@router.post("/release", response_model=UserSubscriptionRead)
def release(
    data: SubscriptionAccessRequest,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    return subscription_throttle.release(session, buyer_id=buyer_id, content_id=data.content_id)


@router.post("/{subscription_id}/subscribe", response_model=UserSubscriptionRead, status_code=status.HTTP_201_CREATED)
def subscribe(
    subscription_id: int,
    data: Optional[SubscribeRequest] = None,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    return subscription_throttle.subscribe_buyer(
        session,
        buyer_id=buyer_id,
        subscription_id=subscription_id,
        auto_renew=data.auto_renew if data else True,
    )


@router.get("/{subscription_id}/content")
def subscription_catalog(subscription_id: int, session: Session = Depends(get_session)):
    items = subscription_throttle.subscription_catalog(session, subscription_id)
    return [{"content_id": c.id, "title": c.title, "author": c.author} for c in items]


@router.post("/{subscription_id}/content/{content_id}", status_code=status.HTTP_201_CREATED)
def add_content(subscription_id: int, content_id: int, session: Session = Depends(get_session)):
    entry = subscription_throttle.add_content(session, subscription_id, content_id)
    return {"subscription_id": entry.subscription_id, "content_id": entry.content_id}


@router.delete("/{subscription_id}/content/{content_id}")
def remove_content(subscription_id: int, content_id: int, session: Session = Depends(get_session)):
    if not subscription_throttle.remove_content(session, subscription_id, content_id):
        raise HTTPException(404, "Content is not part of this subscription")
    return {"message": "Content removed from subscription"}
