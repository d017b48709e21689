from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Boolean, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from staffshift.models.business import Base


class Staff(Base):
    """Worker record together with its finance settings.

    percent_master/percent_salon are stored as entered and may not sum to 100;
    they are normalized when a shift is settled. hourly_rate NULL means the
    worker has no minimum guarantee.
    """
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    full_name = Column(String(255), nullable=False)
    percent_master = Column(Numeric(5, 2), nullable=True, default=60)
    percent_salon = Column(Numeric(5, 2), nullable=True, default=40)
    hourly_rate = Column(Numeric(12, 2), nullable=True)
    payment_mode = Column(String(50), nullable=False, default="percent_with_guarantee")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User")
    branch = relationship("Branch")
