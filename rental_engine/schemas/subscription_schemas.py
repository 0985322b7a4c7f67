from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class SubscriptionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: int = Field(..., ge=0)
    currency: str = "ALL"
    duration_days: int = Field(default=30, gt=0)
    max_concurrent: int = Field(..., gt=0)
    includes_ebooks: bool = True
    includes_hardcopy: bool = False
    featured: bool = False
    content_ids: List[int] = []


class SubscriptionRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: int
    currency: str
    duration_days: int
    max_concurrent: int
    includes_ebooks: bool
    includes_hardcopy: bool
    is_active: bool
    featured: bool

    class Config:
        from_attributes = True


class UserSubscriptionRead(BaseModel):
    id: int
    buyer_id: str
    subscription_id: int
    start_at: datetime
    end_at: datetime
    is_active: bool
    auto_renew: bool
    total_access: int
    current_access: int

    class Config:
        from_attributes = True


class SubscriptionAccessRead(BaseModel):
    has_access: bool
    can_acquire_more: bool
    current: int
    max_concurrent: int
    subscription: Optional[UserSubscriptionRead] = None

    class Config:
        from_attributes = True


class SubscribeRequest(BaseModel):
    auto_renew: bool = True


class SubscriptionAccessRequest(BaseModel):
    content_id: int
