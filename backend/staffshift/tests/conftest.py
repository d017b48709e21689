import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TIMEZONE"] = "Asia/Bishkek"
os.environ["CRON_SECRET"] = "test-cron-secret"

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from staffshift.core.timeutils import local_time_at
from staffshift.models.business import Base, Branch, Business
from staffshift.models.schedule import WorkingHours
from staffshift.models.shift import Shift, ShiftItem
from staffshift.models.staff import Staff
from staffshift.models.user import User


# A Monday
DAY = date(2024, 3, 4)
WEEK_INTERVALS = [{"start": "09:00", "end": "18:00"}]


def at(hhmm: str, day: date = DAY):
    return local_time_at(day, hhmm)


@pytest.fixture
def engine(tmp_path):
    # File backed so worker threads share one database
    engine = create_engine(
        f"sqlite:///{tmp_path / 'shifts.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def business(db):
    business = Business(name="Salon", slug="salon")
    db.add(business)
    db.commit()
    return business


@pytest.fixture
def other_business(db):
    business = Business(name="Other", slug="other")
    db.add(business)
    db.commit()
    return business


@pytest.fixture
def branch(db, business):
    branch = Branch(business_id=business.id, name="Main")
    db.add(branch)
    db.commit()
    return branch


def make_staff(db, business, branch=None, hourly_rate="500", percent_master="60", percent_salon="40",
               payment_mode="percent_with_guarantee", schedule=True, email="master@salon.test"):
    user = User(email=email, role="staff", business_id=business.id)
    db.add(user)
    db.flush()
    staff = Staff(
        business_id=business.id,
        branch_id=branch.id if branch else None,
        user_id=user.id,
        full_name="Master",
        percent_master=Decimal(percent_master) if percent_master is not None else None,
        percent_salon=Decimal(percent_salon) if percent_salon is not None else None,
        hourly_rate=Decimal(hourly_rate) if hourly_rate is not None else None,
        payment_mode=payment_mode,
    )
    db.add(staff)
    db.flush()
    if schedule:
        for dow in range(7):
            db.add(WorkingHours(business_id=business.id, staff_id=staff.id, day_of_week=dow, intervals=WEEK_INTERVALS))
    db.commit()
    return staff


@pytest.fixture
def staff(db, business, branch):
    return make_staff(db, business, branch)


def add_items(db, shift_id, *amounts):
    """amounts: (service_amount, consumables_amount) pairs"""
    for service_amount, consumables_amount in amounts:
        db.add(ShiftItem(
            shift_id=shift_id,
            client_name="Client",
            service_amount=Decimal(str(service_amount)),
            consumables_amount=Decimal(str(consumables_amount)),
        ))
    db.commit()


def count_shifts(db, staff_id):
    return db.query(Shift).filter(Shift.staff_id == staff_id).count()
