# rental_engine/services/settlement.py
"""
Hardcopy return and guarantee settlement.

The guarantee is refunded by condition grade, then any late fee is taken
out of what is left. Late days are whole days rounded up; each costs 10%
of the rental fee. The refund never goes below zero.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, update
from sqlmodel import Session

from rental_engine.constants.rental_status import (
    AuditEventKind,
    ConditionGrade,
    DeliveryMode,
    RentalState,
)
from rental_engine.errors import AlreadyReturned, RentalNotFound
from rental_engine.models.rental import HardcopyRental
from rental_engine.services import audit_log, catalog
from rental_engine.services.pricing import percent_of, round_half_up

logger = logging.getLogger(__name__)

REFUND_PERCENT_BY_GRADE = {
    ConditionGrade.EXCELLENT: Decimal("1.00"),
    ConditionGrade.VERY_GOOD: Decimal("0.95"),
    ConditionGrade.GOOD: Decimal("0.90"),
    ConditionGrade.FAIR: Decimal("0.75"),
    ConditionGrade.POOR: Decimal("0.50"),
    ConditionGrade.DAMAGED: Decimal("0.10"),
}

LATE_FEE_PERCENT_PER_DAY = Decimal("0.10")
SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class Settlement:
    guarantee: int
    guarantee_refund: int
    damage_deduction: int
    days_late: int
    late_fee: int
    refund_amount: int
    grade: ConditionGrade


def days_late(end_at: datetime, now: datetime) -> int:
    if now <= end_at:
        return 0
    return math.ceil((now - end_at).total_seconds() / SECONDS_PER_DAY)


def compute_settlement(
    guarantee: int,
    fee: int,
    grade: ConditionGrade,
    end_at: datetime,
    now: datetime,
) -> Settlement:
    grade = ConditionGrade(grade)

    guarantee_refund = percent_of(guarantee, REFUND_PERCENT_BY_GRADE[grade])
    late = days_late(end_at, now)
    late_fee = round_half_up(Decimal(late) * Decimal(fee) * LATE_FEE_PERCENT_PER_DAY)

    return Settlement(
        guarantee=guarantee,
        guarantee_refund=guarantee_refund,
        damage_deduction=guarantee - guarantee_refund,
        days_late=late,
        late_fee=late_fee,
        refund_amount=max(0, guarantee_refund - late_fee),
        grade=grade,
    )


def return_rental(
    session: Session,
    *,
    rental_id: int,
    buyer_id: str,
    content_id: int,
    grade: ConditionGrade,
    condition_notes: Optional[str] = None,
    damage_notes: Optional[str] = None,
    is_damaged: bool = False,
    return_tracking: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Settlement:
    now = now or datetime.utcnow()
    grade = ConditionGrade(grade)

    rental = session.get(HardcopyRental, rental_id)
    if not rental or rental.buyer_id != buyer_id or rental.content_id != content_id:
        raise RentalNotFound()

    if not rental.awaiting_return:
        raise AlreadyReturned()

    result = compute_settlement(rental.guarantee, rental.fee, grade, rental.end_at, now)
    currency = rental.currency

    updated = session.exec(
        update(HardcopyRental)
        .where(HardcopyRental.id == rental.id)
        .where(HardcopyRental.state.in_([RentalState.ACTIVE.value, RentalState.REVOKED.value]))
        .where(HardcopyRental.returned == False)  # noqa: E712
        .values(
            # a revoked rental keeps its state; only the copy comes back
            state=case(
                (HardcopyRental.state == RentalState.REVOKED.value, RentalState.REVOKED.value),
                else_=RentalState.RETURNED.value,
            ),
            returned=True,
            returned_at=now,
            return_condition=grade.value,
            condition_notes=condition_notes,
            damage_notes=damage_notes,
            is_damaged=is_damaged or grade == ConditionGrade.DAMAGED,
            return_tracking=return_tracking,
            refund_amount=result.refund_amount,
            damage_deduction=result.damage_deduction,
            late_fee=result.late_fee,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != 1:
        session.rollback()
        raise AlreadyReturned()

    catalog.restock_copy(session, rental.content_id)

    def log(kind, amount=None, detail=None):
        audit_log.log_event(
            session,
            kind=kind,
            rental_id=rental_id,
            mode=DeliveryMode.HARDCOPY,
            buyer_id=buyer_id,
            content_id=content_id,
            amount=amount,
            currency=currency if amount is not None else None,
            detail=detail,
            now=now,
        )

    log(AuditEventKind.BOOK_RETURNED, detail={"grade": grade.value, "return_tracking": return_tracking})
    if result.damage_deduction > 0:
        log(AuditEventKind.DAMAGE_ASSESSED, result.damage_deduction, {"grade": grade.value, "notes": damage_notes})
    if result.late_fee > 0:
        log(AuditEventKind.LATE_FEE_CHARGED, result.late_fee, {"days_late": result.days_late})
    log(AuditEventKind.GUARANTEE_REFUNDED, result.refund_amount)
    log(AuditEventKind.RENTAL_COMPLETED)

    session.commit()

    logger.info(
        f"Hardcopy rental {rental_id} returned ({grade.value}, {result.days_late} days late): "
        f"refund {result.refund_amount} {currency}"
    )
    return result
