from .business import Business, Branch
from .user import User
from .staff import Staff
from .schedule import WorkingHours, ScheduleRule, TimeOff
from .shift import Shift, ShiftItem, ShiftStatus

__all__ = [
    "Business",
    "Branch",
    "User",
    "Staff",
    "WorkingHours",
    "ScheduleRule",
    "TimeOff",
    "Shift",
    "ShiftItem",
    "ShiftStatus",
]
