from sqlalchemy import Column, Integer, Date, Boolean, ForeignKey, UniqueConstraint, JSON, String

from staffshift.models.business import Base


class WorkingHours(Base):
    """Weekly schedule row. day_of_week follows date.weekday(): 0 is Monday."""
    __tablename__ = "working_hours"
    __table_args__ = (
        UniqueConstraint("staff_id", "day_of_week", name="uq_working_hours_staff_dow"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    intervals = Column(JSON, nullable=False, default=list)  # [{"start": "09:00", "end": "18:00"}]


class ScheduleRule(Base):
    """Date-specific override of the weekly schedule."""
    __tablename__ = "staff_schedule_rules"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    date_on = Column(Date, nullable=False, index=True)
    intervals = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)


class TimeOff(Base):
    __tablename__ = "staff_time_off"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    date_from = Column(Date, nullable=False)
    date_to = Column(Date, nullable=False)
    is_approved = Column(Boolean, nullable=False, default=True)
    reason = Column(String(255), nullable=True)
