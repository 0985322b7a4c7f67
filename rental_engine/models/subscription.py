from sqlalchemy import CheckConstraint, Index, UniqueConstraint, text
from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime


class Subscription(SQLModel, table=True):
    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("max_concurrent > 0", name="ck_subscriptions_max_concurrent_positive"),
        CheckConstraint("price >= 0", name="ck_subscriptions_price_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None

    price: int
    currency: str = Field(default="ALL")
    duration_days: int = Field(default=30)   # billing period

    max_concurrent: int
    includes_ebooks: bool = Field(default=True)
    includes_hardcopy: bool = Field(default=False)

    is_active: bool = Field(default=True)
    featured: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    catalog: List["SubscriptionContent"] = Relationship(back_populates="subscription")


class SubscriptionContent(SQLModel, table=True):
    __tablename__ = "subscription_content"
    __table_args__ = (
        UniqueConstraint("subscription_id", "content_id", name="uq_subscription_content"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    subscription_id: int = Field(foreign_key="subscriptions.id", index=True)
    content_id: int = Field(foreign_key="content.id", index=True)
    added_at: datetime = Field(default_factory=datetime.utcnow)

    subscription: Optional[Subscription] = Relationship(back_populates="catalog")


class UserSubscription(SQLModel, table=True):
    __tablename__ = "user_subscriptions"
    __table_args__ = (
        CheckConstraint("current_access >= 0", name="ck_user_subscriptions_current_non_negative"),
        Index(
            "uq_user_subscriptions_one_active",
            "buyer_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    buyer_id: str = Field(index=True)
    subscription_id: int = Field(foreign_key="subscriptions.id")

    start_at: datetime
    end_at: datetime
    is_active: bool = Field(default=True)
    auto_renew: bool = Field(default=True)

    # lifetime acquisitions
    total_access: int = Field(default=0)
    # open reading sessions, 0 <= current_access <= subscription.max_concurrent
    current_access: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    subscription: Optional[Subscription] = Relationship()
