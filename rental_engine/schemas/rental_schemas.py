from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from rental_engine.constants.rental_status import (
    ConditionGrade,
    DeliveryMode,
    RentalTier,
    ReportedEventKind,
)


class RentalCreate(BaseModel):
    content_id: int
    mode: DeliveryMode
    tier: RentalTier
    order_item_id: int
    shipping_address: Optional[str] = None


class RentalRead(BaseModel):
    id: int
    mode: DeliveryMode
    buyer_id: str
    content_id: int
    order_item_id: int
    tier: str
    fee: int
    currency: str
    start_at: datetime
    end_at: datetime
    state: str
    revoked_reason: Optional[str] = None
    created_at: datetime

    # ebook
    access_count: Optional[int] = None
    last_access_at: Optional[datetime] = None

    # hardcopy
    guarantee: Optional[int] = None
    initial_condition: Optional[str] = None
    return_condition: Optional[str] = None
    refund_amount: Optional[int] = None
    damage_deduction: Optional[int] = None
    late_fee: Optional[int] = None
    returned: Optional[bool] = None
    returned_at: Optional[datetime] = None
    tracking_number: Optional[str] = None

    # audio
    total_play_seconds: Optional[int] = None
    play_count: Optional[int] = None
    completed: Optional[bool] = None
    last_played_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RentalCreated(RentalRead):
    access_token: Optional[str] = None
    watermark: Optional[str] = None


class AccessCheckRequest(BaseModel):
    mode: DeliveryMode
    content_id: int
    rental_id: int
    token: Optional[str] = None


class AccessGrantRead(BaseModel):
    rental_id: int
    mode: DeliveryMode
    content_id: int
    expires_at: datetime
    locator: Optional[str] = None
    watermark: Optional[str] = None
    access_count: Optional[int] = None

    class Config:
        from_attributes = True


class EventReport(BaseModel):
    rental_id: int
    mode: DeliveryMode
    content_id: int
    kind: ReportedEventKind
    detail: Optional[dict] = None


class AuditEventRead(BaseModel):
    id: str
    rental_id: Optional[int] = None
    delivery_mode: Optional[str] = None
    user_subscription_id: Optional[int] = None
    buyer_id: str
    content_id: int
    kind: str
    amount: Optional[int] = None
    currency: Optional[str] = None
    detail: Optional[dict] = None
    created_at: datetime

    class Config:
        from_attributes = True


class EndRentalRequest(BaseModel):
    reason: Optional[str] = None


class ReturnRequest(BaseModel):
    content_id: int
    grade: ConditionGrade
    condition_notes: Optional[str] = None
    damage_notes: Optional[str] = None
    is_damaged: bool = False
    return_tracking: Optional[str] = None


class SettlementRead(BaseModel):
    guarantee: int
    guarantee_refund: int
    damage_deduction: int
    days_late: int
    late_fee: int
    refund_amount: int
    grade: ConditionGrade

    class Config:
        from_attributes = True


class ShipmentRequest(BaseModel):
    tracking_number: str = Field(..., min_length=1, max_length=100)


class PlayRequest(BaseModel):
    content_id: int


class PlayTimeRequest(BaseModel):
    content_id: int
    seconds: int = Field(..., ge=0)


class AudioProgressRead(BaseModel):
    id: int
    content_id: int
    total_play_seconds: int
    play_count: int
    completed: bool
    last_played_at: Optional[datetime] = None

    class Config:
        from_attributes = True
