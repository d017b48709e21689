"""
Shift lifecycle: open, reopen, close, live projection and the maintenance
operations built on them (overdue auto-close, hours override, summary).

Business rules are checked here, before anything is handed to
shift_transitions, which performs the atomic write.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from staffshift.core.config import settings
from staffshift.core.errors import (
    AlreadyOpenError,
    DayOffError,
    ForbiddenError,
    InvalidHoursError,
    InvalidStateError,
    NoOpenShiftError,
    PastShiftDateError,
    ShiftError,
    ShiftNotFoundError,
    StaffNotFoundError,
)
from staffshift.core.money import ZERO, non_negative, round_cents, round_units, to_decimal
from staffshift.core.timeutils import as_utc, hours_between, local_date, start_of_next_day, utcnow
from staffshift.models.shift import Shift, ShiftItem, ShiftStatus
from staffshift.models.staff import Staff
from staffshift.services import shift_transitions
from staffshift.services.finance import (
    PaymentMode,
    ShiftFinancials,
    apply_guarantee,
    calculate_base_shares,
    calculate_guaranteed_amount,
    calculate_shift_financials,
    resolve_display_shares,
)
from staffshift.services.schedule_service import resolve_working_day
from staffshift.services.shift_transitions import TransitionResult


logger = logging.getLogger(__name__)

# What open_shift does when the day's shift is already open
ON_OPEN_RETURN = "return"
ON_OPEN_REJECT = "reject"


@dataclass(frozen=True)
class ShiftProjection:
    shift_id: int
    status: str
    total_amount: Decimal
    consumables_amount: Decimal
    master_share: Decimal
    salon_share: Decimal
    guaranteed_amount: Decimal
    topup_amount: Decimal
    hours_worked: Optional[Decimal]


def get_staff(db: Session, staff_id: int) -> Staff:
    staff = db.query(Staff).filter(Staff.id == staff_id).first()
    if not staff:
        raise StaffNotFoundError(staff_id=staff_id)
    return staff


def ensure_same_business(staff: Staff, business_id: Optional[int]) -> None:
    if business_id is None or staff.business_id != business_id:
        logger.warning(
            "Staff business mismatch staff_id=%s staff_business=%s requested=%s",
            staff.id, staff.business_id, business_id,
        )
        raise ForbiddenError(staff_id=staff.id)


def get_shift_for_day(db: Session, staff_id: int, shift_date: date) -> Optional[Shift]:
    return db.query(Shift).filter(
        Shift.staff_id == staff_id,
        Shift.shift_date == shift_date,
    ).first()


def get_business_shift(db: Session, shift_id: int, business_id: int) -> Shift:
    """Shifts of other businesses are reported as missing."""
    shift = db.query(Shift).filter(Shift.id == shift_id).first()
    if not shift or shift.business_id != business_id:
        raise ShiftNotFoundError(shift_id=shift_id)
    return shift


def calculate_late_minutes(opened_at: datetime, expected_start: Optional[datetime]) -> int:
    if expected_start is None:
        return 0
    seconds = (as_utc(opened_at) - as_utc(expected_start)).total_seconds()
    if seconds <= 0:
        return 0
    return int(round_units(Decimal(str(seconds)) / Decimal(60)))


def staff_percentages(staff: Staff) -> Tuple[Any, Any]:
    master = staff.percent_master if staff.percent_master is not None else settings.default_percent_master
    salon = staff.percent_salon if staff.percent_salon is not None else settings.default_percent_salon
    return master, salon


def staff_guarantee_rate(staff: Staff) -> Optional[Decimal]:
    if staff.payment_mode == PaymentMode.percent_only.value:
        return None
    rate = to_decimal(staff.hourly_rate)
    if rate is None or rate <= ZERO:
        return None
    return rate


def aggregate_shift_items(db: Session, shift_id: int) -> Tuple[Decimal, Decimal]:
    service_total, consumables_total = db.query(
        func.coalesce(func.sum(ShiftItem.service_amount), 0),
        func.coalesce(func.sum(ShiftItem.consumables_amount), 0),
    ).filter(ShiftItem.shift_id == shift_id).one()
    return to_decimal(service_total, ZERO), to_decimal(consumables_total, ZERO)


def clean_submitted_items(items: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Validate per-client entries; any negative amount rejects the whole close."""
    cleaned = []
    for index, raw in enumerate(items):
        raw = raw or {}
        service_amount = raw.get("service_amount", raw.get("amount"))
        cleaned.append({
            "client_name": raw.get("client_name"),
            "service_name": raw.get("service_name"),
            "service_amount": non_negative(service_amount, f"items[{index}].service_amount"),
            "consumables_amount": non_negative(raw.get("consumables_amount"), f"items[{index}].consumables_amount"),
            "note": raw.get("note"),
        })
    return cleaned


def validate_hours(hours_worked: Any) -> Decimal:
    hours = to_decimal(hours_worked)
    if hours is None or hours < ZERO or hours > Decimal(str(settings.max_adjusted_hours)):
        raise InvalidHoursError(value=str(hours_worked))
    return round_cents(hours)


def settle(
    staff: Staff,
    total_amount: Decimal,
    consumables_amount: Decimal,
    hours_worked: Optional[Decimal],
) -> ShiftFinancials:
    percent_master, percent_salon = staff_percentages(staff)
    return calculate_shift_financials(
        total_amount=total_amount,
        total_consumables=consumables_amount,
        percent_master=percent_master,
        percent_salon=percent_salon,
        hours_worked=hours_worked,
        hourly_rate=staff.hourly_rate,
        payment_mode=staff.payment_mode or PaymentMode.percent_with_guarantee.value,
    )


def open_shift(
    db: Session,
    staff_id: int,
    business_id: int,
    shift_date: Optional[date] = None,
    now: Optional[datetime] = None,
    on_already_open: str = ON_OPEN_RETURN,
) -> TransitionResult:
    """
    Open the worker's shift for a day (today in the business timezone by default).

    A closed shift for that day is reopened through the same call. An already
    open shift is returned untouched, or rejected with AlreadyOpenError when
    on_already_open is 'reject'.

    Days before today are refused since opened_at is always the current time.

    Raises:
        PastShiftDateError, StaffNotFoundError, ForbiddenError, DayOffError,
        AlreadyOpenError, ShiftPersistenceError
    """
    now = as_utc(now or utcnow())
    day = shift_date or local_date(now)
    if day < local_date(now):
        raise PastShiftDateError(shift_date=day.isoformat())

    staff = get_staff(db, staff_id)
    ensure_same_business(staff, business_id)

    working_day = resolve_working_day(db, staff, day)
    if working_day.is_day_off:
        logger.info("Open rejected, day off staff_id=%s date=%s reason=%s", staff_id, day, working_day.reason)
        raise DayOffError(reason=working_day.reason, shift_date=day.isoformat())

    late_minutes = calculate_late_minutes(now, working_day.expected_start)
    result = shift_transitions.open_shift_atomic(
        db,
        staff_id=staff.id,
        business_id=staff.business_id,
        branch_id=staff.branch_id,
        shift_date=day,
        opened_at=now,
        expected_start=working_day.expected_start,
        late_minutes=late_minutes,
    )

    if result.action == shift_transitions.REUSED and on_already_open == ON_OPEN_REJECT:
        raise AlreadyOpenError(shift_id=result.shift.id)

    logger.info(
        "Shift %s staff_id=%s date=%s shift_id=%s late_minutes=%s",
        result.action, staff_id, day, result.shift.id, result.shift.late_minutes,
    )
    return result


def reopen_shift(db: Session, shift_id: int, business_id: int) -> TransitionResult:
    get_business_shift(db, shift_id, business_id)
    result = shift_transitions.reopen_shift_atomic(db, shift_id)
    logger.info("Shift reopened shift_id=%s", shift_id)
    return result


def close_shift(
    db: Session,
    staff_id: int,
    business_id: Optional[int] = None,
    shift_date: Optional[date] = None,
    items: Optional[Sequence[Dict[str, Any]]] = None,
    hours_worked: Any = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Close the worker's open shift and store its settlement.

    Submitted items, when non-empty, become the shift's items; otherwise the
    items already recorded are aggregated. hours_worked overrides the elapsed
    time since opening. Closing an already closed shift returns the stored
    settlement with action 'already_closed'.

    Raises:
        NegativeAmountError, InvalidHoursError, NoOpenShiftError,
        StaffNotFoundError, ForbiddenError, ShiftPersistenceError
    """
    now = as_utc(now or utcnow())
    day = shift_date or local_date(now)

    cleaned_items = clean_submitted_items(items) if items else None
    override_hours = validate_hours(hours_worked) if hours_worked is not None else None

    staff = get_staff(db, staff_id)
    if business_id is not None:
        ensure_same_business(staff, business_id)

    shift = get_shift_for_day(db, staff_id, day)
    if shift is None:
        raise NoOpenShiftError(shift_date=day.isoformat())
    if shift.status == ShiftStatus.closed.value:
        logger.info("Close on already closed shift_id=%s", shift.id)
        return TransitionResult(shift=shift, action=shift_transitions.ALREADY_CLOSED)

    if cleaned_items is not None:
        total_amount = sum((it["service_amount"] for it in cleaned_items), ZERO)
        consumables_amount = sum((it["consumables_amount"] for it in cleaned_items), ZERO)
    else:
        total_amount, consumables_amount = aggregate_shift_items(db, shift.id)

    hours = override_hours if override_hours is not None else hours_between(shift.opened_at, now)
    financials = settle(staff, total_amount, consumables_amount, hours)

    result = shift_transitions.close_shift_atomic(
        db,
        shift_id=shift.id,
        closed_at=now,
        financials=financials,
        hours_worked=hours,
        hourly_rate=staff_guarantee_rate(staff),
        items=cleaned_items,
    )
    logger.info(
        "Shift %s staff_id=%s shift_id=%s total=%s master=%s salon=%s topup=%s",
        result.action, staff_id, shift.id, result.shift.total_amount,
        result.shift.master_share, result.shift.salon_share, result.shift.topup_amount,
    )
    return result


def save_shift_items(
    db: Session,
    staff_id: int,
    business_id: int,
    items: Optional[Sequence[Dict[str, Any]]],
    shift_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Store the per-client list of the worker's open shift.

    The list replaces what was recorded before: entries carrying the id of a
    stored item update it, the rest are added, and stored items left out are
    removed. Entries with no amount and no client name are dropped.

    Raises:
        NegativeAmountError, NoOpenShiftError, StaffNotFoundError,
        ForbiddenError, ShiftPersistenceError
    """
    now = as_utc(now or utcnow())
    day = shift_date or local_date(now)
    items = list(items or [])
    cleaned = clean_submitted_items(items)

    staff = get_staff(db, staff_id)
    ensure_same_business(staff, business_id)

    shift = get_shift_for_day(db, staff_id, day)
    if shift is None or not shift.is_open:
        raise NoOpenShiftError(shift_date=day.isoformat())

    entries = []
    for raw, item in zip(items, cleaned):
        item_id = (raw or {}).get("id")
        if item_id is None and not (item["service_amount"] or item["consumables_amount"] or item["client_name"]):
            continue
        entries.append(dict(item, id=item_id))

    result = shift_transitions.save_items_atomic(db, shift_id=shift.id, items=entries)
    logger.info("Shift items saved staff_id=%s shift_id=%s count=%s", staff_id, shift.id, len(entries))
    return result


def project_shift_earnings(
    db: Session,
    shift_id: int,
    business_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ShiftProjection:
    """
    What the shift is worth right now.

    Open shifts are projected from the items recorded so far and the hours
    elapsed; closed shifts report their stored figures as-is.
    """
    if business_id is not None:
        shift = get_business_shift(db, shift_id, business_id)
    else:
        shift = db.query(Shift).filter(Shift.id == shift_id).first()
        if not shift:
            raise ShiftNotFoundError(shift_id=shift_id)

    if not shift.is_open:
        shares = resolve_display_shares(shift.master_share, shift.salon_share, None, is_open=False)
        return ShiftProjection(
            shift_id=shift.id,
            status=shift.status,
            total_amount=to_decimal(shift.total_amount, ZERO),
            consumables_amount=to_decimal(shift.consumables_amount, ZERO),
            master_share=shares.master_share,
            salon_share=shares.salon_share,
            guaranteed_amount=round_cents(to_decimal(shift.guaranteed_amount, ZERO)),
            topup_amount=round_cents(to_decimal(shift.topup_amount, ZERO)),
            hours_worked=to_decimal(shift.hours_worked),
        )

    staff = get_staff(db, shift.staff_id)
    now = as_utc(now or utcnow())
    total_amount, consumables_amount = aggregate_shift_items(db, shift.id)
    percent_master, percent_salon = staff_percentages(staff)
    base = calculate_base_shares(total_amount, consumables_amount, percent_master, percent_salon)

    hours = hours_between(shift.opened_at, now)
    rate = staff_guarantee_rate(staff)
    guaranteed = calculate_guaranteed_amount(hours, rate) if rate is not None else None
    shares = resolve_display_shares(base.master_share, base.salon_share, guaranteed, is_open=True)

    return ShiftProjection(
        shift_id=shift.id,
        status=shift.status,
        total_amount=total_amount,
        consumables_amount=consumables_amount,
        master_share=shares.master_share,
        salon_share=shares.salon_share,
        guaranteed_amount=guaranteed if guaranteed is not None else round_cents(ZERO),
        topup_amount=shares.topup_amount,
        hours_worked=hours,
    )


def update_shift_hours(db: Session, shift_id: int, business_id: int, hours_worked: Any) -> TransitionResult:
    """
    Correct the hours of a closed shift and recompute its guarantee.

    The base split stored at close is kept as is; only the guarantee, top-up
    and final shares are recomputed, using the hourly rate stored on the
    shift rather than the worker's current settings.
    """
    hours = validate_hours(hours_worked)
    shift = get_business_shift(db, shift_id, business_id)
    if shift.status != ShiftStatus.closed.value:
        raise InvalidStateError("Only closed shifts can be adjusted", status=shift.status)

    split = apply_guarantee(
        shift.base_master_share,
        shift.base_salon_share,
        calculate_guaranteed_amount(hours, shift.hourly_rate),
    )
    result = shift_transitions.adjust_hours_atomic(
        db,
        shift_id=shift.id,
        hours_worked=hours,
        split=split,
    )
    logger.info("Shift hours adjusted shift_id=%s hours=%s", shift_id, hours)
    return result


def close_overdue_shifts(
    db: Session,
    shift_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Close every shift of a past day that was left open.

    The close time is local midnight after the shift date. One failing shift
    does not stop the others; its error is logged and reported.
    """
    now = as_utc(now or utcnow())
    today = local_date(now)
    day = shift_date or (today - timedelta(days=1))
    if day >= today:
        raise InvalidStateError("Only shifts of past days can be closed automatically", shift_date=day.isoformat())

    open_shifts = db.query(Shift).filter(
        Shift.status == ShiftStatus.open.value,
        Shift.shift_date == day,
    ).order_by(Shift.id).all()
    logger.info("Closing overdue shifts date=%s found=%s", day, len(open_shifts))

    closed_at = start_of_next_day(day)
    closed = 0
    errors: List[Dict[str, Any]] = []
    for shift in open_shifts:
        try:
            staff = get_staff(db, shift.staff_id)
            total_amount, consumables_amount = aggregate_shift_items(db, shift.id)
            hours = hours_between(shift.opened_at, closed_at)
            result = shift_transitions.close_shift_atomic(
                db,
                shift_id=shift.id,
                closed_at=closed_at,
                financials=settle(staff, total_amount, consumables_amount, hours),
                hours_worked=hours,
                hourly_rate=staff_guarantee_rate(staff),
            )
        except ShiftError as exc:
            logger.warning("Overdue close failed shift_id=%s error=%s", shift.id, exc.code)
            errors.append({"shift_id": shift.id, "error": exc.code, "message": exc.message})
            continue
        if result.action == shift_transitions.CLOSED:
            closed += 1

    return {"date": day.isoformat(), "found": len(open_shifts), "closed": closed, "errors": errors}


def staff_finance_summary(
    db: Session,
    staff_id: int,
    business_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict[str, Any]:
    staff = get_staff(db, staff_id)
    ensure_same_business(staff, business_id)

    query = db.query(Shift).filter(Shift.staff_id == staff_id)
    if date_from is not None:
        query = query.filter(Shift.shift_date >= date_from)
    if date_to is not None:
        query = query.filter(Shift.shift_date <= date_to)
    shifts = query.order_by(Shift.shift_date).all()

    closed = [s for s in shifts if s.status == ShiftStatus.closed.value]
    late = [s for s in shifts if (s.late_minutes or 0) > 0]

    def total(field: str) -> Decimal:
        return round_cents(sum((to_decimal(getattr(s, field), ZERO) for s in closed), ZERO))

    return {
        "staff_id": staff_id,
        "date_from": date_from.isoformat() if date_from else None,
        "date_to": date_to.isoformat() if date_to else None,
        "shifts_count": len(shifts),
        "open_count": len(shifts) - len(closed),
        "closed_count": len(closed),
        "late_count": len(late),
        "late_minutes": sum(s.late_minutes or 0 for s in shifts),
        "total_amount": total("total_amount"),
        "consumables_amount": total("consumables_amount"),
        "master_share": total("master_share"),
        "salon_share": total("salon_share"),
        "topup_amount": total("topup_amount"),
    }
