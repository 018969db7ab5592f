"""FastAPI application entry point."""

import logging
import os
import threading

import sqlalchemy
from fastapi import Depends, FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware

from translator.config import settings
from translator.exceptions import TransientInfrastructureError
from translator.routes import jobs
from translator.services.providers import ProviderClient
from translator.services.queue import RedisQueue

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Translation Jobs",
    description="Asynchronous text translation and language detection",
    version="0.1.0",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(jobs.router)

# Worker thread management
worker_thread = None
worker_stop_event = threading.Event()


def run_worker_loop():
    """Run the worker loop in a background thread."""
    from translator.worker import worker_loop
    logger.info("Starting background worker thread")
    worker_loop(worker_stop_event)


def run_migrations():
    """Create the jobs table through Alembic if it is missing."""
    from translator.database import engine

    if sqlalchemy.inspect(engine).has_table("jobs"):
        logger.info("Database tables already exist, skipping migrations")
        return

    logger.info("Running database migrations...")
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config(os.path.join(os.path.dirname(os.path.dirname(__file__)), "alembic.ini"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed successfully")


@app.on_event("startup")
async def startup_event():
    """Prepare the database and optionally start an embedded worker."""
    global worker_thread
    logger.info("Starting application...")

    try:
        run_migrations()
    except Exception as e:
        logger.error(f"Startup database check/migration error: {e}")
        logger.info("Continuing startup - assuming database is ready")

    if settings.RUN_EMBEDDED_WORKER:
        worker_thread = threading.Thread(target=run_worker_loop, daemon=True)
        worker_thread.start()
        logger.info("Background worker thread started")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the embedded worker when the app shuts down."""
    logger.info("Shutting down application...")

    # Signal worker to stop
    worker_stop_event.set()

    # Wait for worker thread to finish (with timeout)
    if worker_thread and worker_thread.is_alive():
        worker_thread.join(timeout=10)
        logger.info("Background worker thread stopped")

    if jobs.get_queue.cache_info().currsize:
        jobs.get_queue().close()
    if jobs.get_provider.cache_info().currsize:
        jobs.get_provider().close()


@app.get("/health")
def health(
    response: Response,
    queue: RedisQueue = Depends(jobs.get_queue),
    provider: ProviderClient = Depends(jobs.get_provider),
):
    """
    Health check endpoint.

    Unhealthy (503) while the broker is unreachable, degraded while the
    providers only serve the fallback language list.
    """
    broker = {"status": "down"}
    if queue.health_check():
        try:
            broker = {
                "status": "up",
                "queues": {
                    name: queue.get_queue_length(name)
                    for name in (settings.TRANSLATION_QUEUE, settings.DETECTION_QUEUE)
                },
            }
        except TransientInfrastructureError as e:
            logger.error(f"Could not read queue depth: {e}")

    provider_status = provider.health_check()

    if broker["status"] != "up":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        overall = "unhealthy"
    elif provider_status["status"] != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"

    return {"status": overall, "broker": broker, "provider": provider_status}


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "Translation Jobs",
        "version": "0.1.0",
        "status": "running",
    }
