from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tontine.api import auth, groups, cycles, payments, notifications, reports
from tontine.core.config import settings
from tontine.db.base import SessionLocal
from tontine.services.scheduler import get_scheduler_status, start_scheduler, stop_scheduler
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)
logger.info("Starting Tontine API")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="Tontine API",
    description="Rotating savings groups: contribution cycles, payouts and reminders",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.include_router(auth.router)
app.include_router(groups.router)
app.include_router(cycles.router)
app.include_router(payments.router)
app.include_router(notifications.router)
app.include_router(reports.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Tontine API", "version": VERSION}


@app.get("/api/health")
def health_check():
    """Health check endpoint, covering database connectivity and the reminder scheduler."""
    db_status = "unreachable"
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.warning("Health check could not reach the database: %s", e)
        db_error = str(e)
    finally:
        db.close()

    status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": status,
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "api": "ok",
            "database": db_status,
            "scheduler": "running" if get_scheduler_status()["running"] else "stopped",
        },
        **({"database_error": db_error} if db_error else {})
    }
