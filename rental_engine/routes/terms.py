from fastapi import APIRouter, Depends, Query, Request, status
from sqlmodel import Session

from rental_engine.constants.rental_status import TermsCategory
from rental_engine.database import get_session
from rental_engine.dependencies.buyer import get_buyer_id
from rental_engine.errors import NoActiveTerms
from rental_engine.schemas.terms_schemas import (
    ReacceptanceRead,
    TermsAcceptanceRead,
    TermsAcceptRequest,
    TermsCreate,
    TermsHistoryItem,
    TermsRead,
    TermsStatusRead,
)
from rental_engine.services import terms_gate


router = APIRouter()


@router.get("/status", response_model=TermsStatusRead)
def terms_status(
    category: TermsCategory = Query(...),
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    result = terms_gate.check_acceptance(session, buyer_id, category)
    return TermsStatusRead(
        accepted=result.accepted,
        requires_acceptance=result.requires_acceptance,
        terms=TermsRead.model_validate(result.terms),
    )


@router.get("/reacceptance", response_model=ReacceptanceRead)
def reacceptance(
    category: TermsCategory = Query(...),
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    needed, terms = terms_gate.needs_reacceptance(session, buyer_id, category)
    return ReacceptanceRead(
        needs_reacceptance=needed,
        terms=TermsRead.model_validate(terms) if terms else None,
    )


@router.get("/history", response_model=list[TermsHistoryItem])
def terms_history(
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    return [
        TermsHistoryItem(
            acceptance_id=acceptance.id,
            accepted_at=acceptance.accepted_at,
            terms_id=terms.id,
            title=terms.title,
            version=terms.version,
            category=terms.category,
            effective_at=terms.effective_at,
        )
        for acceptance, terms in terms_gate.acceptance_history(session, buyer_id)
    ]


@router.get("/{category}", response_model=TermsRead)
def active_terms(category: TermsCategory, session: Session = Depends(get_session)):
    terms = terms_gate.get_active_terms(session, category)
    if not terms:
        raise NoActiveTerms(category.value)
    return terms


@router.post("", response_model=TermsRead, status_code=status.HTTP_201_CREATED)
def publish_terms(data: TermsCreate, session: Session = Depends(get_session)):
    return terms_gate.publish_terms(session, **data.model_dump())


@router.post("/accept", response_model=TermsAcceptanceRead, status_code=status.HTTP_201_CREATED)
def accept_terms(
    data: TermsAcceptRequest,
    request: Request,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    return terms_gate.record_acceptance(
        session,
        buyer_id=buyer_id,
        terms_id=data.terms_id,
        confirmed_read=data.confirmed_read,
        confirmed_understood=data.confirmed_understood,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        read_time_seconds=data.read_time_seconds,
        scroll_depth=data.scroll_depth,
    )
