from sqlalchemy import CheckConstraint, Index, UniqueConstraint, text
from sqlmodel import SQLModel, Field
from typing import ClassVar, Optional
from datetime import datetime

from rental_engine.constants.rental_status import (
    ALLOWED_TRANSITIONS,
    ConditionGrade,
    DeliveryMode,
    RentalState,
)


def _rental_table_args(table: str, *extra):
    active = text("state = 'ACTIVE'")
    return (
        # At most one ACTIVE rental per buyer and content in this mode
        Index(
            f"uq_{table}_one_active",
            "buyer_id",
            "content_id",
            unique=True,
            postgresql_where=active,
            sqlite_where=active,
        ),
        CheckConstraint("fee >= 0", name=f"ck_{table}_fee_non_negative"),
        # a paid order line backs a single rental
        UniqueConstraint("order_item_id", name=f"uq_{table}_order_item"),
        *extra,
    )


class RentalBase(SQLModel):
    """Shared shape and lifecycle columns of every rental variant."""

    mode: ClassVar[DeliveryMode]

    id: Optional[int] = Field(default=None, primary_key=True)

    buyer_id: str = Field(index=True)
    content_id: int = Field(foreign_key="content.id", index=True)
    order_item_id: int = Field(foreign_key="rental_order_item.id")

    tier: str
    fee: int
    currency: str = Field(default="ALL")

    start_at: datetime
    end_at: datetime

    state: str = Field(default=RentalState.ACTIVE.value, index=True)
    revoked_reason: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.state == RentalState.ACTIVE

    def is_live(self, now: datetime) -> bool:
        return self.is_active and now < self.end_at

    def can_transition_to(self, state: RentalState) -> bool:
        return state in ALLOWED_TRANSITIONS.get(RentalState(self.state), [])


class EbookRental(RentalBase, table=True):
    __tablename__ = "rentals_ebook"
    __table_args__ = _rental_table_args("rentals_ebook")

    mode: ClassVar[DeliveryMode] = DeliveryMode.EBOOK

    access_token: str = Field(unique=True)
    access_count: int = Field(default=0)
    last_access_at: Optional[datetime] = None
    watermark: Optional[str] = None


class HardcopyRental(RentalBase, table=True):
    __tablename__ = "rentals_hardcopy"
    __table_args__ = _rental_table_args(
        "rentals_hardcopy",
        CheckConstraint("guarantee >= 0", name="ck_rentals_hardcopy_guarantee_non_negative"),
    )

    mode: ClassVar[DeliveryMode] = DeliveryMode.HARDCOPY

    guarantee: int = Field(default=0)

    initial_condition: str = Field(default=ConditionGrade.EXCELLENT.value)
    return_condition: Optional[str] = None
    condition_notes: Optional[str] = None
    is_damaged: bool = Field(default=False)
    damage_notes: Optional[str] = None

    # settlement results, null until returned
    refund_amount: Optional[int] = None
    damage_deduction: Optional[int] = None
    late_fee: Optional[int] = None

    returned: bool = Field(default=False)
    returned_at: Optional[datetime] = None

    shipping_address: str
    tracking_number: Optional[str] = None
    return_tracking: Optional[str] = None

    @property
    def awaiting_return(self) -> bool:
        # a revoked copy is still out with the buyer
        return not self.returned and self.state in (RentalState.ACTIVE, RentalState.REVOKED)


class AudioRental(RentalBase, table=True):
    __tablename__ = "rentals_audio"
    __table_args__ = _rental_table_args("rentals_audio")

    mode: ClassVar[DeliveryMode] = DeliveryMode.AUDIO

    total_play_seconds: int = Field(default=0)
    play_count: int = Field(default=0)
    completed: bool = Field(default=False)
    last_played_at: Optional[datetime] = None


RENTAL_MODELS = {
    DeliveryMode.EBOOK: EbookRental,
    DeliveryMode.HARDCOPY: HardcopyRental,
    DeliveryMode.AUDIO: AudioRental,
}
