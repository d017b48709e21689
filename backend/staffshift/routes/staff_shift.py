import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from staffshift.core.database import get_service_db
from staffshift.core.deps import get_current_staff
from staffshift.core.errors import ShiftError, to_http_exception
from staffshift.core.timeutils import local_date, utcnow
from staffshift.models.shift import ShiftItem, ShiftStatus
from staffshift.models.staff import Staff
from staffshift.services import shift_service
from staffshift.services.schedule_service import resolve_working_day
from staffshift.services.shift_transitions import TransitionResult


router = APIRouter()
logger = logging.getLogger(__name__)


class ShiftItemIn(BaseModel):
    id: int | None = None
    client_name: str | None = None
    service_name: str | None = None
    service_amount: float | None = None
    consumables_amount: float | None = None
    note: str | None = None


class ShiftItemOut(BaseModel):
    id: int
    client_name: str | None = None
    service_name: str | None = None
    service_amount: float
    consumables_amount: float
    note: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ShiftOut(BaseModel):
    id: int
    staff_id: int
    business_id: int
    branch_id: int | None = None
    shift_date: date
    status: str
    opened_at: datetime
    closed_at: datetime | None = None
    expected_start: datetime | None = None
    late_minutes: int
    total_amount: float
    consumables_amount: float
    percent_master: float | None = None
    percent_salon: float | None = None
    base_master_share: float | None = None
    base_salon_share: float | None = None
    master_share: float | None = None
    salon_share: float | None = None
    hours_worked: float | None = None
    hourly_rate: float | None = None
    guaranteed_amount: float
    topup_amount: float

    class Config:
        from_attributes = True


class TransitionOut(BaseModel):
    ok: bool = True
    action: str
    shift: ShiftOut


class ProjectionOut(BaseModel):
    shift_id: int
    status: str
    total_amount: float
    consumables_amount: float
    master_share: float
    salon_share: float
    guaranteed_amount: float
    topup_amount: float
    hours_worked: float | None = None

    class Config:
        from_attributes = True


class CloseShiftIn(BaseModel):
    items: List[ShiftItemIn] | None = None
    hours_worked: float | None = None


class SaveItemsIn(BaseModel):
    items: List[ShiftItemIn] = []


class ShiftItemsOut(BaseModel):
    ok: bool = True
    shift: ShiftOut
    items: List[ShiftItemOut]
    projection: ProjectionOut


class TodayOut(BaseModel):
    shift_date: date
    status: str
    is_day_off: bool
    day_off_reason: str | None = None
    intervals: List[dict] = []
    expected_start: datetime | None = None
    shift: ShiftOut | None = None
    items: List[ShiftItemOut] = []
    projection: ProjectionOut | None = None


def transition_out(result: TransitionResult) -> TransitionOut:
    return TransitionOut(action=result.action, shift=ShiftOut.model_validate(result.shift))


def shift_items(db: Session, shift_id: int) -> List[ShiftItem]:
    return db.query(ShiftItem).filter(ShiftItem.shift_id == shift_id).order_by(ShiftItem.id.desc()).all()


def shift_items_out(db: Session, result: TransitionResult) -> ShiftItemsOut:
    shift = result.shift
    projection = shift_service.project_shift_earnings(db, shift.id)
    return ShiftItemsOut(
        shift=ShiftOut.model_validate(shift),
        items=[ShiftItemOut.model_validate(it) for it in shift_items(db, shift.id)],
        projection=ProjectionOut.model_validate(projection),
    )


@router.post("/open", response_model=TransitionOut)
def open_my_shift(db: Session = Depends(get_service_db), staff: Staff = Depends(get_current_staff)):
    try:
        result = shift_service.open_shift(db, staff.id, staff.business_id)
    except ShiftError as exc:
        raise to_http_exception(exc)
    return transition_out(result)


@router.post("/close", response_model=TransitionOut)
def close_my_shift(
    data: CloseShiftIn | None = None,
    db: Session = Depends(get_service_db),
    staff: Staff = Depends(get_current_staff),
):
    data = data or CloseShiftIn()
    items = [it.model_dump() for it in data.items] if data.items else None
    try:
        result = shift_service.close_shift(
            db,
            staff.id,
            business_id=staff.business_id,
            items=items,
            hours_worked=data.hours_worked,
        )
    except ShiftError as exc:
        raise to_http_exception(exc)
    return transition_out(result)


@router.post("/items", response_model=ShiftItemsOut)
def save_my_items(
    data: SaveItemsIn,
    db: Session = Depends(get_service_db),
    staff: Staff = Depends(get_current_staff),
):
    """Replace the client list of today's open shift."""
    try:
        result = shift_service.save_shift_items(
            db,
            staff.id,
            staff.business_id,
            [it.model_dump() for it in data.items],
        )
        return shift_items_out(db, result)
    except ShiftError as exc:
        raise to_http_exception(exc)


@router.get("/today", response_model=TodayOut)
def my_shift_today(db: Session = Depends(get_service_db), staff: Staff = Depends(get_current_staff)):
    now = utcnow()
    day = local_date(now)
    working_day = resolve_working_day(db, staff, day)
    shift = shift_service.get_shift_for_day(db, staff.id, day)

    items: List[ShiftItem] = []
    projection: Optional[shift_service.ShiftProjection] = None
    if shift is not None:
        items = shift_items(db, shift.id)
        try:
            projection = shift_service.project_shift_earnings(db, shift.id, now=now)
        except ShiftError as exc:
            raise to_http_exception(exc)

    return TodayOut(
        shift_date=day,
        status=shift.status if shift is not None else ShiftStatus.none.value,
        is_day_off=working_day.is_day_off,
        day_off_reason=working_day.reason,
        intervals=working_day.intervals,
        expected_start=working_day.expected_start,
        shift=ShiftOut.model_validate(shift) if shift is not None else None,
        items=[ShiftItemOut.model_validate(it) for it in items],
        projection=ProjectionOut.model_validate(projection) if projection is not None else None,
    )
