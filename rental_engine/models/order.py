from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime


class RentalOrder(SQLModel, table=True):
    __tablename__ = "rental_order"

    id: Optional[int] = Field(default=None, primary_key=True)
    buyer_id: str = Field(index=True)

    status: str = Field(default="PENDING")

    created_at: datetime = Field(default_factory=datetime.utcnow)

    items: List["RentalOrderItem"] = Relationship(back_populates="order")


class RentalOrderItem(SQLModel, table=True):
    """A paid purchase line authorizing one rental. Written by the order
    service; read-only here."""

    __tablename__ = "rental_order_item"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="rental_order.id")
    content_id: int = Field(foreign_key="content.id")

    unit_price: int
    currency: str = Field(default="ALL")
    is_rental: bool = Field(default=True)

    order: Optional[RentalOrder] = Relationship(back_populates="items")
