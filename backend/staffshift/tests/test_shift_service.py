from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import DAY, add_items, at, count_shifts, make_staff
from staffshift.core.errors import (
    AlreadyOpenError,
    DayOffError,
    ForbiddenError,
    InvalidHoursError,
    InvalidStateError,
    NegativeAmountError,
    NoOpenShiftError,
    PastShiftDateError,
    ShiftNotFoundError,
)
from staffshift.core.timeutils import to_db
from staffshift.models.business import Business
from staffshift.models.schedule import ScheduleRule, TimeOff
from staffshift.models.shift import Shift, ShiftItem
from staffshift.models.staff import Staff
from staffshift.services import shift_service
from staffshift.services.seed import seed_demo


def open_at(db, staff, hhmm="09:00", **kwargs):
    return shift_service.open_shift(db, staff.id, staff.business_id, shift_date=DAY, now=at(hhmm), **kwargs)


def close_at(db, staff, hhmm="17:00", **kwargs):
    return shift_service.close_shift(db, staff.id, staff.business_id, shift_date=DAY, now=at(hhmm), **kwargs)


def test_open_creates_shift_on_time(db, staff, branch):
    result = open_at(db, staff, "08:55")
    shift = result.shift
    assert result.action == "created"
    assert shift.status == "open"
    assert shift.late_minutes == 0
    assert shift.branch_id == branch.id
    assert shift.closed_at is None
    assert shift.expected_start == to_db(at("09:00"))
    assert shift.opened_at == to_db(at("08:55"))


def test_open_late_records_minutes(db, staff):
    shift = open_at(db, staff, "09:47").shift
    assert shift.late_minutes == 47


def test_late_minutes_round_to_nearest():
    expected = at("09:00")
    assert shift_service.calculate_late_minutes(expected + timedelta(seconds=89), expected) == 1
    assert shift_service.calculate_late_minutes(expected + timedelta(seconds=90), expected) == 2
    assert shift_service.calculate_late_minutes(expected - timedelta(minutes=5), expected) == 0
    assert shift_service.calculate_late_minutes(expected, None) == 0


def test_open_on_day_off_is_rejected(db, business, branch):
    worker = make_staff(db, business, branch, schedule=False)
    with pytest.raises(DayOffError) as exc_info:
        open_at(db, worker)
    assert exc_info.value.kind == "validation"
    assert exc_info.value.code == "day_off"
    assert count_shifts(db, worker.id) == 0


def test_open_on_time_off_is_rejected(db, business, staff):
    db.add(TimeOff(business_id=business.id, staff_id=staff.id, date_from=DAY, date_to=DAY))
    db.commit()
    with pytest.raises(DayOffError):
        open_at(db, staff)


def test_open_for_other_business_is_forbidden(db, staff, other_business):
    with pytest.raises(ForbiddenError) as exc_info:
        shift_service.open_shift(db, staff.id, other_business.id, shift_date=DAY, now=at("09:00"))
    assert exc_info.value.kind == "authorization"


def test_open_twice_returns_existing_shift(db, staff):
    first = open_at(db, staff, "09:00")
    second = open_at(db, staff, "10:30")
    assert second.action == "reused"
    assert second.shift.id == first.shift.id
    assert second.shift.opened_at == to_db(at("09:00"))
    assert second.shift.late_minutes == 0
    assert count_shifts(db, staff.id) == 1


def test_open_twice_can_be_rejected(db, staff):
    open_at(db, staff)
    with pytest.raises(AlreadyOpenError) as exc_info:
        open_at(db, staff, on_already_open=shift_service.ON_OPEN_REJECT)
    assert exc_info.value.kind == "state_conflict"


def test_close_settles_from_recorded_items(db, staff):
    shift = open_at(db, staff, "09:00").shift
    add_items(db, shift.id, (6000, 300), (4000, 200))

    result = close_at(db, staff, "17:00")
    closed = result.shift
    assert result.action == "closed"
    assert closed.status == "closed"
    assert closed.closed_at == to_db(at("17:00"))
    assert closed.total_amount == Decimal("10000")
    assert closed.consumables_amount == Decimal("500")
    assert closed.hours_worked == Decimal("8")
    assert closed.hourly_rate == Decimal("500")
    assert closed.base_master_share == Decimal("6000")
    assert closed.base_salon_share == Decimal("4500")
    assert closed.guaranteed_amount == Decimal("4000")
    assert closed.topup_amount == 0
    assert closed.master_share == Decimal("6000")
    assert closed.salon_share == Decimal("4500")


def test_close_empty_day_pays_guarantee(db, business, branch):
    worker = make_staff(db, business, branch, hourly_rate="100")
    open_at(db, worker, "09:00")
    closed = close_at(db, worker, "17:00").shift
    assert closed.guaranteed_amount == Decimal("800")
    assert closed.topup_amount == Decimal("800")
    assert closed.master_share == Decimal("800")
    assert closed.salon_share == 0


def test_close_with_submitted_items_replaces_recorded_ones(db, staff):
    shift = open_at(db, staff).shift
    add_items(db, shift.id, (999, 0))
    items = [
        {"client_name": "Ann", "service_name": "Cut", "service_amount": 1500, "consumables_amount": 100},
        {"client_name": "Bob", "amount": 500},
    ]
    closed = close_at(db, staff, items=items).shift
    assert closed.total_amount == Decimal("2000")
    assert closed.consumables_amount == Decimal("100")
    stored = db.query(ShiftItem).filter(ShiftItem.shift_id == shift.id).order_by(ShiftItem.id).all()
    assert [it.client_name for it in stored] == ["Ann", "Bob"]
    assert sum(it.service_amount for it in stored) == closed.total_amount


def test_close_rejects_negative_amounts(db, staff):
    open_at(db, staff)
    with pytest.raises(NegativeAmountError) as exc_info:
        close_at(db, staff, items=[{"service_amount": 100}, {"service_amount": -1}])
    assert exc_info.value.code == "negative_amount"
    assert db.query(Shift).one().status == "open"


def test_close_without_open_shift(db, staff):
    with pytest.raises(NoOpenShiftError) as exc_info:
        close_at(db, staff)
    assert exc_info.value.code == "no_open_shift"


def test_close_is_idempotent(db, staff):
    shift = open_at(db, staff).shift
    add_items(db, shift.id, (1000, 0))
    first = close_at(db, staff, "17:00").shift
    snapshot = (first.master_share, first.salon_share, first.hours_worked, first.closed_at)

    again = close_at(db, staff, "19:00")
    assert again.action == "already_closed"
    assert (again.shift.master_share, again.shift.salon_share,
            again.shift.hours_worked, again.shift.closed_at) == snapshot


def test_close_with_hours_override(db, staff):
    open_at(db, staff)
    closed = close_at(db, staff, hours_worked=2.5).shift
    assert closed.hours_worked == Decimal("2.50")
    assert closed.guaranteed_amount == Decimal("1250")


def test_close_rejects_bad_hours_override(db, staff):
    open_at(db, staff)
    with pytest.raises(InvalidHoursError):
        close_at(db, staff, hours_worked=-1)


def test_close_uses_normalized_percentages(db, business, branch):
    worker = make_staff(db, business, branch, hourly_rate=None, percent_master="30", percent_salon="20")
    shift = open_at(db, worker).shift
    add_items(db, shift.id, (1000, 0))
    closed = close_at(db, worker).shift
    assert closed.percent_master == Decimal("60")
    assert closed.master_share == Decimal("600")
    assert closed.hourly_rate is None
    assert closed.guaranteed_amount == 0


def test_reopen_keeps_row_and_items(db, staff, business):
    shift = open_at(db, staff, "09:10").shift
    add_items(db, shift.id, (1000, 0), (2000, 50))
    close_at(db, staff)

    result = shift_service.reopen_shift(db, shift.id, business.id)
    reopened = result.shift
    assert result.action == "reopened"
    assert reopened.id == shift.id
    assert reopened.status == "open"
    assert reopened.closed_at is None
    assert reopened.master_share is None
    assert reopened.opened_at == to_db(at("09:10"))
    assert reopened.late_minutes == 10
    assert db.query(ShiftItem).filter(ShiftItem.shift_id == shift.id).count() == 2
    assert count_shifts(db, staff.id) == 1

    closed_again = close_at(db, staff, "18:00").shift
    assert closed_again.total_amount == Decimal("3000")


def test_reopen_open_shift_is_invalid_state(db, staff, business):
    shift = open_at(db, staff).shift
    with pytest.raises(InvalidStateError) as exc_info:
        shift_service.reopen_shift(db, shift.id, business.id)
    assert exc_info.value.code == "invalid_state"


def test_reopen_shift_of_other_business_is_not_found(db, staff, other_business):
    shift = open_at(db, staff).shift
    close_at(db, staff)
    with pytest.raises(ShiftNotFoundError):
        shift_service.reopen_shift(db, shift.id, other_business.id)


def test_open_on_closed_day_reopens(db, staff):
    shift = open_at(db, staff).shift
    close_at(db, staff)
    result = open_at(db, staff, "18:30")
    assert result.action == "reopened"
    assert result.shift.id == shift.id
    assert result.shift.status == "open"
    assert count_shifts(db, staff.id) == 1


def test_projection_of_open_shift(db, business, branch):
    worker = make_staff(db, business, branch, hourly_rate="1000")
    shift = open_at(db, worker, "09:00").shift
    add_items(db, shift.id, (5000, 500))

    projection = shift_service.project_shift_earnings(db, shift.id, now=at("13:00"))
    assert projection.status == "open"
    assert projection.hours_worked == Decimal("4")
    assert projection.total_amount == Decimal("5000")
    # base 3000 / 2500, guarantee 4000
    assert projection.guaranteed_amount == Decimal("4000")
    assert projection.topup_amount == Decimal("1000")
    assert projection.master_share == Decimal("4000")
    assert projection.salon_share == Decimal("1500")
    assert db.get(Shift, shift.id).master_share is None


def test_projection_of_closed_shift_uses_stored_figures(db, staff, business):
    shift = open_at(db, staff).shift
    add_items(db, shift.id, (10000, 500))
    close_at(db, staff)
    staff.percent_master = Decimal("10")
    staff.hourly_rate = Decimal("5000")
    db.commit()

    projection = shift_service.project_shift_earnings(db, shift.id, business_id=business.id, now=at("23:00"))
    assert projection.status == "closed"
    assert projection.master_share == Decimal("6000")
    assert projection.salon_share == Decimal("4500")
    assert projection.hours_worked == Decimal("8")


def test_update_hours_recomputes_guarantee(db, staff, business):
    shift = open_at(db, staff).shift
    add_items(db, shift.id, (2000, 0))
    close_at(db, staff, "11:00")
    # 2h guarantee 1000 < base 1200
    result = shift_service.update_shift_hours(db, shift.id, business.id, 6)
    adjusted = result.shift
    assert result.action == "adjusted"
    assert adjusted.hours_worked == Decimal("6")
    assert adjusted.guaranteed_amount == Decimal("3000")
    assert adjusted.topup_amount == Decimal("1800")
    assert adjusted.master_share == Decimal("3000")
    assert adjusted.salon_share == 0
    assert adjusted.total_amount == Decimal("2000")


def test_update_hours_uses_rate_stored_at_close(db, staff, business):
    shift = open_at(db, staff).shift
    close_at(db, staff, "11:00")
    staff.hourly_rate = Decimal("1")
    db.commit()
    adjusted = shift_service.update_shift_hours(db, shift.id, business.id, 4).shift
    assert adjusted.guaranteed_amount == Decimal("2000")


def test_update_hours_validation(db, staff, business):
    shift = open_at(db, staff).shift
    with pytest.raises(InvalidHoursError):
        shift_service.update_shift_hours(db, shift.id, business.id, 49)
    with pytest.raises(InvalidHoursError):
        shift_service.update_shift_hours(db, shift.id, business.id, "nan")
    with pytest.raises(InvalidStateError):
        shift_service.update_shift_hours(db, shift.id, business.id, 4)


def test_close_overdue_shifts(db, business, branch):
    early = make_staff(db, business, branch, email="a@salon.test", hourly_rate="100")
    late = make_staff(db, business, branch, email="b@salon.test", hourly_rate="100")
    done = make_staff(db, business, branch, email="c@salon.test", hourly_rate="100")
    first = open_at(db, early, "09:00").shift
    add_items(db, first.id, (1000, 0))
    open_at(db, late, "20:00")
    open_at(db, done, "09:00")
    close_at(db, done, "12:00")

    summary = shift_service.close_overdue_shifts(db, now=at("03:00", DAY + timedelta(days=1)))
    assert summary == {"date": DAY.isoformat(), "found": 2, "closed": 2, "errors": []}

    db.expire_all()
    auto_closed = db.get(Shift, first.id)
    assert auto_closed.status == "closed"
    assert auto_closed.closed_at == to_db(at("00:00", DAY + timedelta(days=1)))
    assert auto_closed.hours_worked == Decimal("15")
    assert auto_closed.master_share == Decimal("1500")
    assert auto_closed.total_amount == Decimal("1000")


def test_close_overdue_refuses_today(db, staff):
    with pytest.raises(InvalidStateError):
        shift_service.close_overdue_shifts(db, shift_date=DAY, now=at("23:00"))


def test_finance_summary(db, staff, business):
    shift = open_at(db, staff, "09:30").shift
    add_items(db, shift.id, (10000, 500))
    close_at(db, staff, "17:30")
    next_day = DAY + timedelta(days=1)
    shift_service.open_shift(db, staff.id, business.id, shift_date=next_day, now=at("09:00", next_day))

    summary = shift_service.staff_finance_summary(db, staff.id, business.id)
    assert summary["shifts_count"] == 2
    assert summary["closed_count"] == 1
    assert summary["open_count"] == 1
    assert summary["late_count"] == 1
    assert summary["late_minutes"] == 30
    assert summary["total_amount"] == Decimal("10000")
    assert summary["master_share"] == Decimal("6000")
    assert summary["salon_share"] == Decimal("4500")

    only_second = shift_service.staff_finance_summary(db, staff.id, business.id, date_from=next_day)
    assert only_second["shifts_count"] == 1
    assert only_second["closed_count"] == 0


def test_demo_seed_is_idempotent_and_usable(db):
    seed_demo(db)
    seed_demo(db)
    assert db.query(Business).filter(Business.slug == "demo").count() == 1

    worker = db.query(Staff).one()
    shift = shift_service.open_shift(db, worker.id, worker.business_id, shift_date=DAY, now=at("09:00")).shift
    closed = close_at(db, worker, "17:00").shift
    assert shift.id == closed.id
    assert closed.master_share == Decimal("800")


def test_open_with_empty_date_override_uses_weekly_start(db, business, staff):
    db.add(ScheduleRule(business_id=business.id, staff_id=staff.id, date_on=DAY, intervals=[]))
    db.commit()
    shift = open_at(db, staff, "09:10").shift
    assert shift.status == "open"
    assert shift.late_minutes == 10


def test_open_for_past_day_is_rejected(db, staff):
    with pytest.raises(PastShiftDateError) as exc_info:
        shift_service.open_shift(
            db, staff.id, staff.business_id, shift_date=DAY - timedelta(days=1), now=at("09:00"),
        )
    assert exc_info.value.kind == "validation"
    assert exc_info.value.code == "past_date"
    assert count_shifts(db, staff.id) == 0


def test_update_hours_keeps_stored_base_split(db, business, branch):
    # 1:2 normalizes to a repeating fraction that Numeric(9,4) cannot hold exactly
    worker = make_staff(db, business, branch, hourly_rate="1", percent_master="1", percent_salon="2")
    shift = open_at(db, worker).shift
    add_items(db, shift.id, ("1000000.52", 0))
    closed = close_at(db, worker, "17:00").shift
    assert closed.base_master_share == Decimal("333334")
    assert closed.base_salon_share == Decimal("666667")

    adjusted = shift_service.update_shift_hours(db, shift.id, business.id, 9).shift
    assert adjusted.guaranteed_amount == Decimal("9")
    assert adjusted.topup_amount == 0
    assert adjusted.base_master_share == Decimal("333334")
    assert adjusted.master_share == adjusted.base_master_share
    assert adjusted.salon_share == adjusted.base_salon_share


def test_update_hours_tops_up_from_stored_business_share(db, business, branch):
    worker = make_staff(db, business, branch, hourly_rate="1000", percent_master="1", percent_salon="2")
    shift = open_at(db, worker).shift
    add_items(db, shift.id, (1000, 100))
    close_at(db, worker, "09:30")

    adjusted = shift_service.update_shift_hours(db, shift.id, business.id, 1).shift
    # base 333 / 667 + 100 consumables
    assert adjusted.guaranteed_amount == Decimal("1000")
    assert adjusted.topup_amount == Decimal("667")
    assert adjusted.master_share == Decimal("1000")
    assert adjusted.salon_share == Decimal("100")
    assert adjusted.master_share + adjusted.salon_share >= adjusted.base_master_share + adjusted.base_salon_share


def save_items(db, staff, items, hhmm="10:00"):
    return shift_service.save_shift_items(db, staff.id, staff.business_id, items, shift_date=DAY, now=at(hhmm))


def stored_items(db, shift_id):
    return db.query(ShiftItem).filter(ShiftItem.shift_id == shift_id).order_by(ShiftItem.id).all()


def test_saved_items_feed_the_projection(db, business, branch):
    worker = make_staff(db, business, branch, hourly_rate="1000")
    shift = open_at(db, worker, "09:00").shift
    result = save_items(db, worker, [
        {"client_name": "Ann", "service_amount": 5000, "consumables_amount": 500},
        {"client_name": None, "service_amount": 0},
    ])
    assert result.action == "items_saved"
    assert [it.client_name for it in stored_items(db, shift.id)] == ["Ann"]

    projection = shift_service.project_shift_earnings(db, shift.id, now=at("13:00"))
    assert projection.total_amount == Decimal("5000")
    assert projection.consumables_amount == Decimal("500")
    assert projection.master_share == Decimal("4000")
    assert projection.salon_share == Decimal("1500")


def test_save_items_updates_adds_and_removes(db, staff):
    shift = open_at(db, staff).shift
    save_items(db, staff, [
        {"client_name": "Ann", "service_amount": 1000},
        {"client_name": "Bob", "service_amount": 2000},
    ])
    ann_id, bob_id = [it.id for it in stored_items(db, shift.id)]

    save_items(db, staff, [
        {"id": ann_id, "client_name": "Ann", "service_amount": 1500},
        {"client_name": "Cid", "consumables_amount": 50},
    ], hhmm="11:00")
    db.expire_all()
    rows = stored_items(db, shift.id)
    assert [(it.client_name, it.service_amount) for it in rows] == [("Ann", Decimal("1500")), ("Cid", 0)]
    assert rows[0].id == ann_id
    assert bob_id not in {it.id for it in rows}


def test_close_settles_saved_items(db, staff):
    open_at(db, staff)
    save_items(db, staff, [{"client_name": "Ann", "service_amount": 10000, "consumables_amount": 500}])
    closed = close_at(db, staff).shift
    assert closed.total_amount == Decimal("10000")
    assert closed.master_share == Decimal("6000")
    assert closed.salon_share == Decimal("4500")


def test_save_items_rejects_negative_amount(db, staff):
    shift = open_at(db, staff).shift
    with pytest.raises(NegativeAmountError):
        save_items(db, staff, [{"client_name": "Ann", "service_amount": 100, "consumables_amount": -5}])
    assert stored_items(db, shift.id) == []


def test_save_items_requires_open_shift(db, staff):
    with pytest.raises(NoOpenShiftError):
        save_items(db, staff, [{"client_name": "Ann", "service_amount": 100}])

    shift = open_at(db, staff).shift
    close_at(db, staff)
    with pytest.raises(NoOpenShiftError):
        save_items(db, staff, [{"client_name": "Ann", "service_amount": 100}])
    assert stored_items(db, shift.id) == []


def test_save_items_for_other_business_is_forbidden(db, staff, other_business):
    open_at(db, staff)
    with pytest.raises(ForbiddenError):
        shift_service.save_shift_items(db, staff.id, other_business.id, [], shift_date=DAY, now=at("10:00"))
