from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from staffshift.core.database import get_service_db
from staffshift.core.deps import get_business, require_manager
from staffshift.core.errors import ShiftError, to_http_exception
from staffshift.models.business import Business
from staffshift.services import shift_service
from staffshift.routes.staff_shift import (
    ProjectionOut,
    SaveItemsIn,
    ShiftItemsOut,
    TransitionOut,
    shift_items_out,
    transition_out,
)


router = APIRouter(dependencies=[Depends(require_manager)])


class UpdateHoursIn(BaseModel):
    hours_worked: float


class FinanceStatsOut(BaseModel):
    staff_id: int
    date_from: date | None = None
    date_to: date | None = None
    shifts_count: int
    open_count: int
    closed_count: int
    late_count: int
    late_minutes: int
    total_amount: float
    consumables_amount: float
    master_share: float
    salon_share: float
    topup_amount: float


@router.post("/staff/{staff_id}/shift/open", response_model=TransitionOut)
def open_staff_shift(
    staff_id: int,
    shift_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_service_db),
    business: Business = Depends(get_business),
):
    """Open a shift on behalf of a worker. An already open shift is a conflict here."""
    try:
        result = shift_service.open_shift(
            db,
            staff_id,
            business.id,
            shift_date=shift_date,
            on_already_open=shift_service.ON_OPEN_REJECT,
        )
    except ShiftError as exc:
        raise to_http_exception(exc)
    return transition_out(result)


@router.post("/staff/{staff_id}/shift/items", response_model=ShiftItemsOut)
def save_staff_items(
    staff_id: int,
    data: SaveItemsIn,
    db: Session = Depends(get_service_db),
    business: Business = Depends(get_business),
):
    try:
        result = shift_service.save_shift_items(
            db,
            staff_id,
            business.id,
            [it.model_dump() for it in data.items],
        )
        return shift_items_out(db, result)
    except ShiftError as exc:
        raise to_http_exception(exc)


@router.post("/shifts/{shift_id}/reopen", response_model=TransitionOut)
def reopen_shift(shift_id: int, db: Session = Depends(get_service_db), business: Business = Depends(get_business)):
    try:
        result = shift_service.reopen_shift(db, shift_id, business.id)
    except ShiftError as exc:
        raise to_http_exception(exc)
    return transition_out(result)


@router.post("/shifts/{shift_id}/update-hours", response_model=TransitionOut)
def update_shift_hours(
    shift_id: int,
    data: UpdateHoursIn,
    db: Session = Depends(get_service_db),
    business: Business = Depends(get_business),
):
    try:
        result = shift_service.update_shift_hours(db, shift_id, business.id, data.hours_worked)
    except ShiftError as exc:
        raise to_http_exception(exc)
    return transition_out(result)


@router.get("/shifts/{shift_id}/earnings", response_model=ProjectionOut)
def shift_earnings(shift_id: int, db: Session = Depends(get_service_db), business: Business = Depends(get_business)):
    try:
        projection = shift_service.project_shift_earnings(db, shift_id, business_id=business.id)
    except ShiftError as exc:
        raise to_http_exception(exc)
    return ProjectionOut.model_validate(projection)


@router.get("/staff/{staff_id}/finance/stats", response_model=FinanceStatsOut)
def staff_finance_stats(
    staff_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_service_db),
    business: Business = Depends(get_business),
):
    try:
        summary = shift_service.staff_finance_summary(db, staff_id, business.id, date_from, date_to)
    except ShiftError as exc:
        raise to_http_exception(exc)
    return FinanceStatsOut(**summary)
