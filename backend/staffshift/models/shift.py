from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from staffshift.models.business import Base


class ShiftStatus(str, Enum):
    none = "none"  # no row for the worker and day
    open = "open"
    closed = "closed"


class Shift(Base):
    __tablename__ = "staff_shifts"
    __table_args__ = (
        UniqueConstraint("staff_id", "shift_date", name="uq_staff_shifts_staff_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True, index=True)
    shift_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ShiftStatus.open.value, index=True)

    # UTC, naive
    opened_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    closed_at = Column(DateTime, nullable=True)
    expected_start = Column(DateTime, nullable=True)
    late_minutes = Column(Integer, nullable=False, default=0)

    # Settlement, authoritative only once closed
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    consumables_amount = Column(Numeric(12, 2), nullable=False, default=0)
    percent_master = Column(Numeric(9, 4), nullable=True)
    percent_salon = Column(Numeric(9, 4), nullable=True)
    base_master_share = Column(Numeric(12, 2), nullable=True)
    base_salon_share = Column(Numeric(12, 2), nullable=True)
    master_share = Column(Numeric(12, 2), nullable=True)
    salon_share = Column(Numeric(12, 2), nullable=True)
    hours_worked = Column(Numeric(6, 2), nullable=True)
    hourly_rate = Column(Numeric(12, 2), nullable=True)
    guaranteed_amount = Column(Numeric(12, 2), nullable=False, default=0)
    topup_amount = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    staff = relationship("Staff")
    items = relationship("ShiftItem", back_populates="shift", cascade="all, delete-orphan", order_by="ShiftItem.id")

    @property
    def is_open(self) -> bool:
        return self.status == ShiftStatus.open.value


class ShiftItem(Base):
    __tablename__ = "staff_shift_items"

    id = Column(Integer, primary_key=True, index=True)
    shift_id = Column(Integer, ForeignKey("staff_shifts.id", ondelete="CASCADE"), nullable=False, index=True)
    client_name = Column(String(255), nullable=True)
    service_name = Column(String(255), nullable=True)
    service_amount = Column(Numeric(12, 2), nullable=False, default=0)
    consumables_amount = Column(Numeric(12, 2), nullable=False, default=0)
    note = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    shift = relationship("Shift", back_populates="items")
