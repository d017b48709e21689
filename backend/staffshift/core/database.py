import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from staffshift.core.config import settings
from staffshift.models.business import Base


logger = logging.getLogger(__name__)

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Separate factory for the settlement core. It reads and writes shift rows
# across the whole business regardless of who is calling.
ServiceSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_service_db():
    db = ServiceSessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    # Create tables in dev/test without running Alembic
    if settings.env in {"dev", "test"}:
        Base.metadata.create_all(bind=engine)
        logger.info("Database schema ensured for env=%s", settings.env)
