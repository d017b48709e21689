from decimal import Decimal

from sqlalchemy.orm import Session

from staffshift.core.roles import Role
from staffshift.models.business import Branch, Business
from staffshift.models.schedule import WorkingHours
from staffshift.models.staff import Staff
from staffshift.models.user import User


DEMO_WEEK = [{"start": "09:00", "end": "18:00"}]


def seed_demo(db: Session):
    if db.query(Business).filter(Business.slug == 'demo').first():
        return
    business = Business(name='Demo Salon', slug='demo')
    db.add(business)
    db.flush()
    branch = Branch(business_id=business.id, name='Main')
    db.add(branch)
    db.add(User(email='owner@demo.com', role=Role.owner.value, business_id=business.id))
    worker = User(email='master@demo.com', role=Role.staff.value, business_id=business.id)
    db.add(worker)
    db.flush()
    staff = Staff(
        business_id=business.id,
        branch_id=branch.id,
        user_id=worker.id,
        full_name='Demo Master',
        percent_master=Decimal("60"),
        percent_salon=Decimal("40"),
        hourly_rate=Decimal("100"),
    )
    db.add(staff)
    db.flush()
    # Monday to Saturday
    for dow in range(6):
        db.add(WorkingHours(business_id=business.id, staff_id=staff.id, day_of_week=dow, intervals=DEMO_WEEK))
    db.commit()
