"""
Main FastAPI application.

This is the entry point for the API server.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.core.config import settings
from app.db.session import async_session_maker
from app.errors import AppError, StorageBackendError, app_error_handler, storage_error_handler
from app.realtime.connection_manager import ConnectionManager
from app.routers import (
    departments,
    employees,
    health,
    notifications,
    projects,
    task,
    websocket,
)
from app.storage.attachment_store import build_attachment_store
from app.storage.backends import LocalAttachmentBackend
from app.workers.trash_sweeper import TrashSweepRunner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for the FastAPI app.

    - On startup: build the attachment store and socket manager, start the
      trash sweeper.
    - On shutdown: stop the sweeper and wait for it to finish.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting %s...", settings.APP_NAME)

    sweeper_task = None
    runner = None
    if settings.TRASH_SWEEP_ENABLED:
        runner = TrashSweepRunner(
            session_factory=app.state.session_factory,
            store=app.state.attachment_store,
            publisher=app.state.connection_manager,
            retention_days=settings.TRASH_RETENTION_DAYS,
            sweep_hour_utc=settings.TRASH_SWEEP_HOUR_UTC,
        )
        sweeper_task = asyncio.create_task(runner.run_forever())

    yield  # The server runs while we're "yielded" here

    if runner is not None:
        runner.request_stop()
        try:
            await asyncio.wait_for(sweeper_task, timeout=10)
        except asyncio.TimeoutError:
            sweeper_task.cancel()
    logger.info("Shutting down %s...", settings.APP_NAME)


# Create the FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Task management API with trash, attachments and real-time events",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.session_factory = async_session_maker
app.state.attachment_store = build_attachment_store(settings)
app.state.connection_manager = ConnectionManager()

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StorageBackendError, storage_error_handler)

# Include routers (API endpoints)
app.include_router(health.router, tags=["Health"])
app.include_router(departments.router)
app.include_router(employees.router)
app.include_router(projects.router)
app.include_router(task.router)
app.include_router(notifications.router)
app.include_router(websocket.router)

# Local uploads are served directly
if isinstance(app.state.attachment_store.upload_backend, LocalAttachmentBackend):
    app.mount(
        settings.UPLOADS_URL_PREFIX.rstrip("/"),
        StaticFiles(directory=str(app.state.attachment_store.upload_backend.root)),
        name="uploads",
    )
