from fastapi import APIRouter, Depends
from sqlmodel import Session

from rental_engine.database import get_session
from rental_engine.dependencies.buyer import get_buyer_id
from rental_engine.schemas.rental_schemas import AudioProgressRead, PlayRequest, PlayTimeRequest
from rental_engine.services import audio_sessions


router = APIRouter()


@router.post("/{rental_id}/play", response_model=AudioProgressRead)
def start_listening(
    rental_id: int,
    data: PlayRequest,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    return audio_sessions.start_listening(
        session, rental_id=rental_id, buyer_id=buyer_id, content_id=data.content_id
    )


@router.post("/{rental_id}/play-time", response_model=AudioProgressRead)
def record_play_time(
    rental_id: int,
    data: PlayTimeRequest,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    return audio_sessions.record_play_time(
        session,
        rental_id=rental_id,
        buyer_id=buyer_id,
        content_id=data.content_id,
        seconds=data.seconds,
    )


@router.post("/{rental_id}/complete", response_model=AudioProgressRead)
def complete_listening(
    rental_id: int,
    data: PlayRequest,
    session: Session = Depends(get_session),
    buyer_id: str = Depends(get_buyer_id),
):
    return audio_sessions.complete_listening(
        session, rental_id=rental_id, buyer_id=buyer_id, content_id=data.content_id
    )
