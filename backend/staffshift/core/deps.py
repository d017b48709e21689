from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from staffshift.core.config import settings
from staffshift.core.database import get_db
from staffshift.core.security import decode_token
from staffshift.core.roles import MANAGER_ROLES
from staffshift.models.business import Business
from staffshift.models.staff import Staff
from staffshift.models.user import User


def get_business_slug(request: Request) -> str:
    slug = request.headers.get(settings.business_header)
    if slug:
        return slug
    # Fallback: subdomain e.g., salon.myapp.com
    host = request.headers.get("host", "")
    parts = host.split(":")[0].split(".")
    if len(parts) >= 3:
        return parts[0]
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing business header")


def get_business(db: Session = Depends(get_db), business_slug: str = Depends(get_business_slug)) -> Business:
    business = db.query(Business).filter(Business.slug == business_slug, Business.is_active.is_(True)).first()
    if not business:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return business


def get_current_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
    business: Business = Depends(get_business),
) -> User:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    token = authorization.split(" ", 1)[1]
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user_id = payload.get("sub")
    try:
        user_pk = int(user_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = db.query(User).filter(User.id == user_pk, User.business_id == business.id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_current_staff(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Staff:
    staff = db.query(Staff).filter(
        Staff.user_id == user.id,
        Staff.business_id == user.business_id,
        Staff.is_active.is_(True),
    ).first()
    if not staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No staff profile for this user")
    return staff


def require_manager(user: User = Depends(get_current_user)) -> User:
    if user.role not in {r.value for r in MANAGER_ROLES}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
    return user
