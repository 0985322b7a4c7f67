from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from rental_engine.constants.rental_status import TermsCategory


class TermsCreate(BaseModel):
    category: TermsCategory
    title: str = Field(..., min_length=1, max_length=200)
    version: str = Field(..., min_length=1, max_length=50)
    content: str = Field(..., min_length=1)
    effective_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class TermsRead(BaseModel):
    id: int
    title: str
    version: str
    category: str
    content: str
    is_active: bool
    effective_at: datetime
    expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TermsAcceptRequest(BaseModel):
    terms_id: int
    confirmed_read: bool
    confirmed_understood: bool
    read_time_seconds: Optional[int] = Field(None, ge=0)
    scroll_depth: Optional[int] = Field(None, ge=0, le=100)


class TermsAcceptanceRead(BaseModel):
    id: int
    buyer_id: str
    terms_id: int
    accepted_at: datetime
    confirmed_read: bool
    confirmed_understood: bool

    class Config:
        from_attributes = True


class TermsStatusRead(BaseModel):
    accepted: bool
    requires_acceptance: bool
    terms: TermsRead


class ReacceptanceRead(BaseModel):
    needs_reacceptance: bool
    terms: Optional[TermsRead] = None


class TermsHistoryItem(BaseModel):
    acceptance_id: int
    accepted_at: datetime
    terms_id: int
    title: str
    version: str
    category: str
    effective_at: datetime
