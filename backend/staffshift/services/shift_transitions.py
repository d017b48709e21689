"""
Atomic shift transitions.

This is the only code that writes shift rows. Each call is one database
transaction keyed on (staff_id, shift_date) or the shift id:

- open: row lock plus the uq_staff_shifts_staff_date unique constraint. A
  concurrent insert that loses the race gets IntegrityError and falls back to
  the row the winner created, so only one row per day ever exists and a
  retried open never moves opened_at.
- close / reopen / hours adjustment / item edits: compare-and-swap, an UPDATE
  guarded by the expected status. rowcount tells whether this call won; the
  loser reloads the persisted row instead of writing its own numbers.

No business rules (day off, amount signs) are checked here; the lifecycle
service does that before calling in. Retries are left to the caller and
are safe because every transition is idempotent on its key.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from staffshift.core.errors import InvalidStateError, ShiftError, ShiftNotFoundError, ShiftPersistenceError
from staffshift.core.timeutils import to_db
from staffshift.models.shift import Shift, ShiftItem, ShiftStatus
from staffshift.services.finance import GuaranteeSplit, ShiftFinancials


logger = logging.getLogger(__name__)

CREATED = "created"
REUSED = "reused"
REOPENED = "reopened"
CLOSED = "closed"
ALREADY_CLOSED = "already_closed"
ADJUSTED = "adjusted"
ITEMS_SAVED = "items_saved"


@dataclass
class TransitionResult:
    shift: Shift
    action: str


def _settlement_reset() -> Dict[str, Any]:
    return {
        "status": ShiftStatus.open.value,
        "closed_at": None,
        "total_amount": Decimal("0"),
        "consumables_amount": Decimal("0"),
        "percent_master": None,
        "percent_salon": None,
        "base_master_share": None,
        "base_salon_share": None,
        "master_share": None,
        "salon_share": None,
        "hours_worked": None,
        "hourly_rate": None,
        "guaranteed_amount": Decimal("0"),
        "topup_amount": Decimal("0"),
    }


def _settlement_values(financials: ShiftFinancials, hours_worked: Optional[Decimal]) -> Dict[str, Any]:
    return {
        "total_amount": financials.total_amount,
        "consumables_amount": financials.total_consumables,
        "percent_master": financials.normalized_percent_master,
        "percent_salon": financials.normalized_percent_salon,
        "base_master_share": financials.base_master_share,
        "base_salon_share": financials.base_salon_share,
        "master_share": financials.final_master_share,
        "salon_share": financials.final_salon_share,
        "hours_worked": hours_worked,
        "guaranteed_amount": financials.guaranteed_amount,
        "topup_amount": financials.topup_amount,
    }


def _reload(db: Session, shift_id: int) -> Shift:
    shift = db.get(Shift, shift_id, populate_existing=True)
    if shift is None:
        raise ShiftNotFoundError(shift_id=shift_id)
    return shift


def _find_for_update(db: Session, staff_id: int, shift_date: date) -> Optional[Shift]:
    return db.query(Shift).filter(
        Shift.staff_id == staff_id,
        Shift.shift_date == shift_date,
    ).with_for_update().populate_existing().first()


def _compare_and_swap(db: Session, shift_id: int, expected_status: str, values: Dict[str, Any]) -> bool:
    result = db.execute(
        update(Shift)
        .where(Shift.id == shift_id, Shift.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _persistence_error(db: Session, operation: str, exc: Exception, **context: Any) -> ShiftPersistenceError:
    db.rollback()
    logger.error("Shift %s failed %s", operation, context, exc_info=exc)
    return ShiftPersistenceError(operation=operation)


def open_shift_atomic(
    db: Session,
    *,
    staff_id: int,
    business_id: int,
    branch_id: Optional[int],
    shift_date: date,
    opened_at: datetime,
    expected_start: Optional[datetime],
    late_minutes: int,
) -> TransitionResult:
    """
    Create the day's shift, or reuse / reopen the row that already exists.

    Returns action 'created', 'reused' (already open, left untouched) or
    'reopened' (was closed; opened_at and shift items are kept).
    """
    try:
        existing = _find_for_update(db, staff_id, shift_date)
        if existing is None:
            shift = Shift(
                staff_id=staff_id,
                business_id=business_id,
                branch_id=branch_id,
                shift_date=shift_date,
                status=ShiftStatus.open.value,
                opened_at=to_db(opened_at),
                expected_start=to_db(expected_start),
                late_minutes=late_minutes,
            )
            db.add(shift)
            db.flush()
            db.commit()
            return TransitionResult(shift=_reload(db, shift.id), action=CREATED)

        shift_id = existing.id
        if existing.status == ShiftStatus.closed.value:
            if _compare_and_swap(db, shift_id, ShiftStatus.closed.value, _settlement_reset()):
                db.commit()
                return TransitionResult(shift=_reload(db, shift_id), action=REOPENED)
        db.commit()
        return TransitionResult(shift=_reload(db, shift_id), action=REUSED)
    except IntegrityError:
        # Another request inserted the row between our lookup and our insert
        db.rollback()
        logger.info("Concurrent open for staff_id=%s date=%s, reusing existing row", staff_id, shift_date)
    except ShiftError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise _persistence_error(db, "open", exc, staff_id=staff_id, shift_date=str(shift_date)) from exc

    try:
        winner = db.query(Shift).filter(
            Shift.staff_id == staff_id,
            Shift.shift_date == shift_date,
        ).populate_existing().first()
        db.commit()
    except SQLAlchemyError as exc:
        raise _persistence_error(db, "open", exc, staff_id=staff_id, shift_date=str(shift_date)) from exc
    if winner is None:
        raise ShiftPersistenceError(operation="open", staff_id=staff_id)
    return TransitionResult(shift=winner, action=REUSED)


def reopen_shift_atomic(db: Session, shift_id: int) -> TransitionResult:
    """closed -> open on an existing row. Anything else is invalid_state."""
    try:
        swapped = _compare_and_swap(db, shift_id, ShiftStatus.closed.value, _settlement_reset())
        db.commit()
        shift = _reload(db, shift_id)
    except ShiftError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise _persistence_error(db, "reopen", exc, shift_id=shift_id) from exc

    if not swapped:
        raise InvalidStateError("Only a closed shift can be reopened", status=shift.status)
    return TransitionResult(shift=shift, action=REOPENED)


def close_shift_atomic(
    db: Session,
    *,
    shift_id: int,
    closed_at: datetime,
    financials: ShiftFinancials,
    hours_worked: Optional[Decimal],
    hourly_rate: Optional[Decimal],
    items: Optional[List[Dict[str, Any]]] = None,
) -> TransitionResult:
    """
    open -> closed with the given settlement.

    When `items` is given it replaces the shift's items in the same
    transaction. If the shift is already closed nothing is written and the
    stored settlement is returned with action 'already_closed'.
    """
    values = _settlement_values(financials, hours_worked)
    values.update(
        status=ShiftStatus.closed.value,
        closed_at=to_db(closed_at),
        hourly_rate=hourly_rate,
    )
    try:
        swapped = _compare_and_swap(db, shift_id, ShiftStatus.open.value, values)
        if swapped and items is not None:
            db.execute(delete(ShiftItem).where(ShiftItem.shift_id == shift_id))
            db.add_all(ShiftItem(shift_id=shift_id, **item) for item in items)
        db.commit()
        shift = _reload(db, shift_id)
    except ShiftError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise _persistence_error(db, "close", exc, shift_id=shift_id) from exc

    if swapped:
        return TransitionResult(shift=shift, action=CLOSED)
    if shift.status == ShiftStatus.closed.value:
        return TransitionResult(shift=shift, action=ALREADY_CLOSED)
    raise InvalidStateError("Shift is not open", status=shift.status)


def adjust_hours_atomic(
    db: Session,
    *,
    shift_id: int,
    hours_worked: Decimal,
    split: GuaranteeSplit,
) -> TransitionResult:
    """Rewrite hours and guarantee figures of a closed shift. The base split is left alone."""
    values = {
        "hours_worked": hours_worked,
        "guaranteed_amount": split.guaranteed_amount,
        "topup_amount": split.topup_amount,
        "master_share": split.master_share,
        "salon_share": split.salon_share,
    }
    try:
        swapped = _compare_and_swap(db, shift_id, ShiftStatus.closed.value, values)
        db.commit()
        shift = _reload(db, shift_id)
    except ShiftError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise _persistence_error(db, "adjust_hours", exc, shift_id=shift_id) from exc

    if not swapped:
        raise InvalidStateError("Only closed shifts can be adjusted", status=shift.status)
    return TransitionResult(shift=shift, action=ADJUSTED)


def save_items_atomic(db: Session, *, shift_id: int, items: List[Dict[str, Any]]) -> TransitionResult:
    """
    Make `items` the item list of an open shift.

    Entries whose id belongs to the shift update that row, entries without a
    known id are inserted, and stored rows missing from the list are deleted.
    The status check and the item writes share one transaction, so a shift
    closed in the meantime never gets its items changed.
    """
    try:
        swapped = _compare_and_swap(db, shift_id, ShiftStatus.open.value, {"updated_at": datetime.utcnow()})
        if swapped:
            stored = {row.id: row for row in db.query(ShiftItem).filter(ShiftItem.shift_id == shift_id)}
            kept = set()
            for item in items:
                values = dict(item)
                row = stored.get(values.pop("id", None))
                if row is None:
                    db.add(ShiftItem(shift_id=shift_id, **values))
                    continue
                for key, value in values.items():
                    setattr(row, key, value)
                kept.add(row.id)
            for item_id, row in stored.items():
                if item_id not in kept:
                    db.delete(row)
        db.commit()
        shift = _reload(db, shift_id)
    except ShiftError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise _persistence_error(db, "save_items", exc, shift_id=shift_id) from exc

    if not swapped:
        raise InvalidStateError("Items can only be changed on an open shift", status=shift.status)
    return TransitionResult(shift=shift, action=ITEMS_SAVED)
