# -------- ADMIN RENTALS --------
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from rental_engine.database import get_session
from rental_engine.dependencies.admin import require_admin
from rental_engine.schemas.rental_schemas import RentalRead, ShipmentRequest
from rental_engine.services import rental_ledger
from rental_engine.utils.pagination import paginate


router = APIRouter()


@router.post("/hardcopy/{rental_id}/shipment", response_model=RentalRead)
def record_shipment(
    rental_id: int,
    data: ShipmentRequest,
    session: Session = Depends(get_session),
    _: str = Depends(require_admin),
):
    rental = rental_ledger.record_shipment(
        session,
        rental_id=rental_id,
        tracking_number=data.tracking_number,
    )
    return RentalRead.model_validate(rental)


@router.get("/hardcopy/overdue")
def overdue_hardcopy(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: Session = Depends(get_session),
    _: str = Depends(require_admin),
):
    rentals = rental_ledger.overdue_hardcopy(session)
    return paginate(items=rentals, page=page, limit=limit, serialize=RentalRead.model_validate)
