"""
FastAPI app entrypoint.

Featured placement reservations, Stripe payment webhook, vendor tier tools.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from app.api.routes import featured, vendor, webhooks
from app.core.constants import FEATURED_REMINDER_HOUR_UTC, FEATURED_REMINDER_JOB_ID
from app.scheduler.featured_reminder_job import run_featured_reminder_job

logger = logging.getLogger(__name__)

# Scheduler: featured slot expiry reminders once a day
_scheduler = BackgroundScheduler(timezone="UTC")


@asynccontextmanager
async def lifespan(app: FastAPI):
    _scheduler.add_job(
        run_featured_reminder_job,
        "cron",
        hour=FEATURED_REMINDER_HOUR_UTC,
        minute=0,
        id=FEATURED_REMINDER_JOB_ID,
        replace_existing=True,
    )
    _scheduler.start()
    app.state.scheduler = _scheduler
    logger.info("Backend ready; featured reminder job scheduled daily at %02d:00 UTC", FEATURED_REMINDER_HOUR_UTC)
    yield
    _scheduler.shutdown(wait=False)


app = FastAPI(title="Marketplace Featured Placement", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(featured.router, prefix="/featured", tags=["featured"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(vendor.router, prefix="/vendor", tags=["vendor"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Marketplace API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
