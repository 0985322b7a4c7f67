import logging
from datetime import datetime
from sqlmodel import Session

from rental_engine.constants.rental_status import DeliveryMode
from rental_engine.database import engine
from rental_engine.services.rental_ledger import expire_stale, overdue_hardcopy

logger = logging.getLogger(__name__)


def expire_lapsed_rentals(bind=None, now: datetime = None) -> dict:
    """
    Reporting refresh only: access checks already expire rentals lazily.
    Hardcopy rentals are left ACTIVE; overdue ones are just counted.
    """
    now = now or datetime.utcnow()

    with Session(bind or engine) as session:
        expired = {
            mode.value: expire_stale(session, mode, now)
            for mode in (DeliveryMode.EBOOK, DeliveryMode.AUDIO)
        }
        session.commit()

        overdue = len(overdue_hardcopy(session, now))

    logger.info(
        f"Expired {expired['ebook']} ebook and {expired['audio']} audio rentals; "
        f"{overdue} hardcopy rentals overdue"
    )
    return {"expired": expired, "overdue_hardcopy": overdue}


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    expire_lapsed_rentals()
