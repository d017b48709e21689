import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from staffshift.core.config import settings
from staffshift.core.database import get_service_db
from staffshift.core.errors import ShiftError, to_http_exception
from staffshift.services import shift_service


router = APIRouter()
logger = logging.getLogger(__name__)


def require_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/close-shifts", dependencies=[Depends(require_cron_secret)])
def close_overdue_shifts(
    shift_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_service_db),
):
    """Close shifts left open on a past day (yesterday by default)."""
    try:
        summary = shift_service.close_overdue_shifts(db, shift_date=shift_date)
    except ShiftError as exc:
        raise to_http_exception(exc)
    if summary["errors"]:
        logger.warning("Overdue close finished with %s errors for %s", len(summary["errors"]), summary["date"])
    return {"ok": True, **summary}
