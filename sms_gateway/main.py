"""
Municipal SMS Gateway - Main Application Entry Point

Receives MTN OCEP delivery receipts and citizen SMS replies for the
citizen engagement portal, using FastAPI, SQLite and APScheduler.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sms_gateway.api.mtn_webhook import router as mtn_router
from sms_gateway.api.sms import router as sms_router
from sms_gateway.infrastructure.database import init_database
from sms_gateway.infrastructure.mtn_sms_client import MtnConfigurationError, MtnSmsClient
from sms_gateway.infrastructure.scheduler import start_scheduler, stop_scheduler, get_scheduler
from sms_gateway.config.settings import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Municipal SMS Gateway...")

    if not settings.webhook_token:
        logger.error("WEBHOOK_TOKEN is not set - all webhook calls will be rejected")

    logger.info("Initializing database...")
    await init_database()
    logger.info("Database initialized")

    logger.info("Starting scheduler...")
    await start_scheduler()
    logger.info("Scheduler started")

    try:
        app.state.sms_client = MtnSmsClient.from_settings(settings)
        logger.info(f"MTN SMS client ready for {settings.mtn_base_url}")
    except MtnConfigurationError as e:
        app.state.sms_client = None
        logger.warning(f"Outbound SMS disabled: {e}")

    logger.info("Application startup complete!")
    logger.info(f"Timezone: {settings.timezone}")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await stop_scheduler()
    if app.state.sms_client is not None:
        await app.state.sms_client.aclose()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Municipal SMS Gateway",
    description="MTN SMS delivery receipts and citizen replies for the municipal portal",
    version="1.0.0",
    lifespan=lifespan
)

# Register routers
app.include_router(mtn_router, prefix="/webhooks", tags=["MTN Webhooks"])
app.include_router(sms_router, prefix="/sms", tags=["SMS"])


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Municipal SMS Gateway",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "delivery_receipts": "/webhooks/mtn/dlr",
            "incoming_messages": "/webhooks/mtn/mo",
            "send_sms": "/sms/send",
            "message_status": "/sms/status/{key}",
            "health": "/health"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "sms-gateway"}


@app.get("/scheduler/status")
async def scheduler_status():
    """Get scheduler status and pending jobs."""
    scheduler = get_scheduler()

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": str(job.next_run_time) if job.next_run_time else None
        })

    return {
        "running": scheduler.running,
        "jobs_count": len(jobs),
        "jobs": jobs
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "sms_gateway.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
