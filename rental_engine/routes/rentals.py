from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from rental_engine.constants.rental_status import AuditEventKind, DeliveryMode
from rental_engine.database import get_session
from rental_engine.dependencies.buyer import get_buyer_id
from rental_engine.errors import AccessDenied
from rental_engine.schemas.rental_schemas import (
    AccessCheckRequest,
    AccessGrantRead,
    AuditEventRead,
    EndRentalRequest,
    EventReport,
    RentalCreate,
    RentalCreated,
    RentalRead,
    ReturnRequest,
    SettlementRead,
)
from rental_engine.services import audit_log, rental_facade, rental_ledger, settlement
from rental_engine.utils.pagination import paginate


router = APIRouter()


@router.post("", response_model=RentalCreated, status_code=status.HTTP_201_CREATED)
def create_rental(
    data: RentalCreate,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    rental = rental_ledger.create_rental(
        session,
        buyer_id=buyer_id,
        content_id=data.content_id,
        mode=data.mode,
        tier=data.tier,
        order_item_id=data.order_item_id,
        shipping_address=data.shipping_address,
    )
    return RentalCreated.model_validate(rental)


@router.post("/access", response_model=AccessGrantRead)
def check_access(
    data: AccessCheckRequest,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    grant = rental_ledger.check_access(
        session,
        mode=data.mode,
        buyer_id=buyer_id,
        content_id=data.content_id,
        rental_id=data.rental_id,
        token=data.token,
    )
    if grant is None:
        raise AccessDenied()
    return AccessGrantRead.model_validate(grant)


@router.post("/events", response_model=AuditEventRead, status_code=status.HTTP_201_CREATED)
def report_event(
    data: EventReport,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    """
    Reader and tamper-detection clients push events here. Only revocation
    and early-end events are taken; revocation, if any, happens behind the
    response.
    """
    event = audit_log.report_event(
        session,
        rental_id=data.rental_id,
        mode=data.mode,
        buyer_id=buyer_id,
        content_id=data.content_id,
        kind=AuditEventKind(data.kind.value),
        detail=data.detail,
    )
    return AuditEventRead.model_validate(event)


@router.get("/history")
def rental_history(
    mode: Optional[DeliveryMode] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    rentals = rental_facade.rental_history(session, buyer_id, mode)
    return paginate(items=rentals, page=page, limit=limit, serialize=RentalRead.model_validate)


@router.get("/active", response_model=list[RentalRead])
def active_rentals(
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    return [RentalRead.model_validate(r) for r in rental_facade.active_rentals(session, buyer_id)]


@router.post("/hardcopy/{rental_id}/return", response_model=SettlementRead)
def return_hardcopy(
    rental_id: int,
    data: ReturnRequest,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    result = settlement.return_rental(
        session,
        rental_id=rental_id,
        buyer_id=buyer_id,
        content_id=data.content_id,
        grade=data.grade,
        condition_notes=data.condition_notes,
        damage_notes=data.damage_notes,
        is_damaged=data.is_damaged,
        return_tracking=data.return_tracking,
    )
    return SettlementRead.model_validate(result)


@router.post("/{mode}/{rental_id}/end", response_model=RentalRead)
def end_rental(
    mode: DeliveryMode,
    rental_id: int,
    data: Optional[EndRentalRequest] = None,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    rental = rental_ledger.end_rental(
        session,
        mode=mode,
        rental_id=rental_id,
        buyer_id=buyer_id,
        reason=data.reason if data else None,
    )
    return RentalRead.model_validate(rental)


@router.get("/{mode}/{rental_id}/events", response_model=list[AuditEventRead])
def rental_events(
    mode: DeliveryMode,
    rental_id: int,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    rental_ledger.get_rental(session, mode, rental_id, buyer_id)
    events = audit_log.rental_events(session, rental_id, mode, buyer_id)
    return [AuditEventRead.model_validate(e) for e in events]
