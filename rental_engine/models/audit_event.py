from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Column, Index, JSON, event
from sqlmodel import SQLModel, Field

from rental_engine.errors import AuditLogImmutableError


class AuditEvent(SQLModel, table=True):
    """
    Append-only lifecycle and security log.

    Rows are never updated or deleted; the ORM hooks below refuse both.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_rental", "delivery_mode", "rental_id"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    rental_id: Optional[int] = Field(default=None)
    delivery_mode: Optional[str] = Field(default=None)
    user_subscription_id: Optional[int] = Field(default=None, index=True)

    buyer_id: str = Field(index=True)
    content_id: int = Field(index=True)

    kind: str = Field(index=True)
    amount: Optional[int] = None
    currency: Optional[str] = None
    detail: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=datetime.utcnow)


@event.listens_for(AuditEvent, "before_update")
def _refuse_update(mapper, connection, target):
    raise AuditLogImmutableError()


@event.listens_for(AuditEvent, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise AuditLogImmutableError()
