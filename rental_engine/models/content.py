from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class Content(SQLModel, table=True):
    """Local projection of a catalog item; inventory lives here so it can be
    decremented in the same transaction as a hardcopy rental insert."""

    __tablename__ = "content"
    __table_args__ = (
        CheckConstraint("inventory >= 0", name="ck_content_inventory_non_negative"),
    )

    #main info
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    author: str
    active: bool = Field(default=True)

    #delivery modes
    has_digital: bool = Field(default=False)
    has_hardcopy: bool = Field(default=False)
    has_audio: bool = Field(default=False)

    #prices in minor units
    price: int = Field(default=0)           # hardcopy base price
    digital_price: Optional[int] = None
    audio_price: Optional[int] = None
    currency: str = Field(default="ALL")

    #physical stock
    inventory: int = Field(default=0)

    #locators handed out in access grants
    digital_file_url: Optional[str] = None
    audio_file_url: Optional[str] = None

    #timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def in_stock(self) -> bool:
        return self.inventory is not None and self.inventory > 0
