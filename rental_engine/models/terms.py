from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class TermsVersion(SQLModel, table=True):
    __tablename__ = "terms_versions"
    __table_args__ = (
        # one active version per category
        Index(
            "uq_terms_versions_one_active",
            "category",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    version: str
    category: str = Field(index=True)
    content: str

    is_active: bool = Field(default=True)
    effective_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)


class TermsAcceptance(SQLModel, table=True):
    """Append-only record of a buyer accepting a terms version."""

    __tablename__ = "terms_acceptances"

    id: Optional[int] = Field(default=None, primary_key=True)
    buyer_id: str = Field(index=True)
    terms_id: int = Field(foreign_key="terms_versions.id", index=True)

    accepted_at: datetime = Field(default_factory=datetime.utcnow)
    confirmed_read: bool = Field(default=False)
    confirmed_understood: bool = Field(default=False)

    # client context, stored as given
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    read_time_seconds: Optional[int] = None
    scroll_depth: Optional[int] = None
