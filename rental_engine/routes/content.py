from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from rental_engine.database import get_session
from rental_engine.dependencies.buyer import get_buyer_id
from rental_engine.schemas.rental_schemas import RentalRead
from rental_engine.services import catalog, rental_facade


router = APIRouter()


def _content_or_404(session: Session, content_id: int):
    content = catalog.get_content(session, content_id)
    if not content:
        raise HTTPException(404, "Content not found")
    return content


@router.get("/{content_id}/availability")
def rental_availability(content_id: int, session: Session = Depends(get_session)):
    content = _content_or_404(session, content_id)
    return {
        "content_id": content.id,
        "currency": content.currency,
        "can_be_rented": rental_facade.can_be_rented(content),
        "modes": rental_facade.rental_availability(content),
    }


@router.get("/{content_id}/rental-info")
def rental_info(
    content_id: int,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    info = rental_facade.rental_info(session, content_id, buyer_id)
    if info is None:
        raise HTTPException(404, "Content not found")

    content = info["content"]
    return {
        "content_id": content.id,
        "title": content.title,
        "author": content.author,
        "currency": content.currency,
        "inventory": content.inventory,
        "modes": info["availability"],
        "active_rentals": {
            mode: RentalRead.model_validate(rental).model_dump(mode="json") if rental else None
            for mode, rental in info["active_rentals"].items()
        },
    }


@router.get("/{content_id}/recommended-mode")
def recommended_mode(content_id: int, session: Session = Depends(get_session)):
    content = _content_or_404(session, content_id)
    mode = rental_facade.recommend_delivery_mode(content)
    return {
        "content_id": content.id,
        "recommended_mode": mode.value if mode else None,
    }


@router.get("/{content_id}/access")
def has_access(
    content_id: int,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    _content_or_404(session, content_id)
    return {
        "content_id": content_id,
        "has_access": rental_facade.has_any_access(session, buyer_id, content_id),
    }
