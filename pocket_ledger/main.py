"""
Pocket Ledger - FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pocket_ledger.config import get_settings
from pocket_ledger.logger import setup_logging
from pocket_ledger.models import Base
from pocket_ledger.models.base import SessionLocal, engine
from pocket_ledger.scheduler import ReminderScheduler
from pocket_ledger.services.ledger_service import LedgerService
from pocket_ledger.api.health import router as health_router
from pocket_ledger.api.wallets import router as wallets_router
from pocket_ledger.api.transactions import router as transactions_router
from pocket_ledger.api.categories import router as categories_router
from pocket_ledger.api.recurring import router as recurring_router
from pocket_ledger.api.goals import router as goals_router
from pocket_ledger.api.auth import router as auth_router

log = logging.getLogger(__name__)

settings = get_settings()


def init_database() -> None:
    """Create missing tables and the built-in categories."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        LedgerService(db).seed_system_categories()
        db.commit()
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    log.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if settings.AUTO_CREATE_TABLES:
        init_database()

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = ReminderScheduler(
            SessionLocal,
            interval_seconds=settings.REMINDER_CHECK_INTERVAL_SECONDS,
        )
        scheduler.start()

    yield

    if scheduler is not None:
        await scheduler.stop()
    log.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Personal finance ledger with recurring expenses and savings goals",
    lifespan=lifespan,
)

# Register routers
app.include_router(health_router)
app.include_router(wallets_router)
app.include_router(transactions_router)
app.include_router(categories_router)
app.include_router(recurring_router)
app.include_router(goals_router)
app.include_router(auth_router)
