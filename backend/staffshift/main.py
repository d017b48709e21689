import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from staffshift.core.config import settings
from staffshift.routes.health import router as health_router
from staffshift.routes.staff_shift import router as staff_shift_router
from staffshift.routes.dashboard import router as dashboard_router
from staffshift.routes.cron import router as cron_router
from staffshift.core.database import SessionLocal, init_db
from staffshift.services.seed import seed_demo


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="Staff Shift API", version="0.1.0")

    origins = settings.cors_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(health_router, tags=["health"])
    app.include_router(staff_shift_router, prefix="/staff/shift", tags=["staff-shift"])
    app.include_router(dashboard_router, prefix="/dashboard", tags=["dashboard"])
    app.include_router(cron_router, prefix="/cron", tags=["cron"])

    return app


app = create_app()

# Only seed in development or when explicitly requested
if settings.env == "dev" or os.getenv("FORCE_SEED") == "true":
    try:
        init_db()
        with SessionLocal() as db:
            seed_demo(db)
    except Exception:
        logger.exception("Demo seed failed")
