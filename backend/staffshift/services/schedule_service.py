"""
Reads a worker's schedule for one day: time off, date overrides, weekly hours.
The shift core only consumes this; authoring schedules happens elsewhere.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from staffshift.core.timeutils import local_time_at, parse_hhmm
from staffshift.models.schedule import ScheduleRule, TimeOff, WorkingHours
from staffshift.models.staff import Staff


logger = logging.getLogger(__name__)

REASON_TIME_OFF = "time_off"
REASON_NO_SCHEDULE = "no_schedule"


@dataclass
class WorkingDay:
    is_day_off: bool
    reason: Optional[str] = None
    intervals: List[Dict[str, str]] = field(default_factory=list)
    expected_start: Optional[datetime] = None


def clean_intervals(raw: Any) -> List[Dict[str, str]]:
    """Keep well-formed {start, end} entries, sorted by start time."""
    if not isinstance(raw, list):
        return []
    cleaned = []
    for entry in raw:
        if not isinstance(entry, dict):
            logger.warning("Skipping malformed schedule interval %r", entry)
            continue
        start, end = entry.get("start"), entry.get("end")
        try:
            start_t, end_t = parse_hhmm(start), parse_hhmm(end)
        except (AttributeError, TypeError, ValueError):
            logger.warning("Skipping malformed schedule interval %r", entry)
            continue
        if end_t <= start_t:
            continue
        cleaned.append({"start": start_t.strftime("%H:%M"), "end": end_t.strftime("%H:%M")})
    return sorted(cleaned, key=lambda it: it["start"])


def is_on_time_off(db: Session, staff_id: int, day: date) -> bool:
    row = db.query(TimeOff.id).filter(
        TimeOff.staff_id == staff_id,
        TimeOff.is_approved.is_(True),
        TimeOff.date_from <= day,
        TimeOff.date_to >= day,
    ).first()
    return row is not None


def get_day_intervals(db: Session, staff_id: int, day: date) -> List[Dict[str, str]]:
    """Intervals of an active date override, else of the weekly row."""
    rule = db.query(ScheduleRule).filter(
        ScheduleRule.staff_id == staff_id,
        ScheduleRule.date_on == day,
        ScheduleRule.is_active.is_(True),
    ).order_by(ScheduleRule.id.desc()).first()
    if rule is not None:
        intervals = clean_intervals(rule.intervals)
        if intervals:
            return intervals

    weekly = db.query(WorkingHours).filter(
        WorkingHours.staff_id == staff_id,
        WorkingHours.day_of_week == day.weekday(),
    ).first()
    if weekly is None:
        return []
    return clean_intervals(weekly.intervals)


def resolve_working_day(db: Session, staff: Staff, day: date) -> WorkingDay:
    if is_on_time_off(db, staff.id, day):
        return WorkingDay(is_day_off=True, reason=REASON_TIME_OFF)

    intervals = get_day_intervals(db, staff.id, day)
    if not intervals:
        return WorkingDay(is_day_off=True, reason=REASON_NO_SCHEDULE)

    return WorkingDay(
        is_day_off=False,
        intervals=intervals,
        expected_start=local_time_at(day, intervals[0]["start"]),
    )
