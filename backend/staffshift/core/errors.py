"""
Errors raised by the shift lifecycle.

Every error carries a kind (what class of failure it is), a machine code
and a human message, so callers can tell a day off apart from a closed
shift or a database failure.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


VALIDATION = "validation"
AUTHORIZATION = "authorization"
STATE_CONFLICT = "state_conflict"
NOT_FOUND = "not_found"
INTERNAL = "internal"

_STATUS_BY_KIND = {
    VALIDATION: status.HTTP_400_BAD_REQUEST,
    AUTHORIZATION: status.HTTP_403_FORBIDDEN,
    STATE_CONFLICT: status.HTTP_409_CONFLICT,
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
    INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ShiftError(Exception):
    kind = INTERNAL
    code = "internal"
    default_message = "Unexpected shift error"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "kind": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class DayOffError(ShiftError):
    kind = VALIDATION
    code = "day_off"
    default_message = "The worker has no working hours on this day"


class NegativeAmountError(ShiftError):
    kind = VALIDATION
    code = "negative_amount"
    default_message = "Amounts cannot be negative"


class InvalidHoursError(ShiftError):
    kind = VALIDATION
    code = "invalid_hours"
    default_message = "Hours worked must be a number between 0 and the allowed maximum"


class NoOpenShiftError(ShiftError):
    kind = VALIDATION
    code = "no_open_shift"
    default_message = "There is no open shift for this day"


class PastShiftDateError(ShiftError):
    kind = VALIDATION
    code = "past_date"
    default_message = "A shift cannot be opened for a past day"


class AlreadyOpenError(ShiftError):
    kind = STATE_CONFLICT
    code = "already_open"
    default_message = "The shift is already open"


class InvalidStateError(ShiftError):
    kind = STATE_CONFLICT
    code = "invalid_state"
    default_message = "The shift is not in a state that allows this action"


class ForbiddenError(ShiftError):
    kind = AUTHORIZATION
    code = "forbidden"
    default_message = "The worker does not belong to this business"


class StaffNotFoundError(ShiftError):
    kind = NOT_FOUND
    code = "staff_not_found"
    default_message = "Worker not found"


class ShiftNotFoundError(ShiftError):
    kind = NOT_FOUND
    code = "shift_not_found"
    default_message = "Shift not found"


class ShiftPersistenceError(ShiftError):
    kind = INTERNAL
    code = "internal"
    default_message = "Could not save the shift, try again"


def to_http_exception(error: ShiftError) -> HTTPException:
    status_code = _STATUS_BY_KIND.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=error.as_dict())
