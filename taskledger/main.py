"""taskledger - task lifecycle, recurrence and points ledger service."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from taskledger.app_state import TaskLedgerApp
from taskledger.core.config import constants
from taskledger.core.errors import TaskLedgerError
from taskledger.core.logging import configure_logfire, instrument_fastapi
from taskledger.core.scheduler import RECURRENCE_JOB_ID
from taskledger.interface.api import router as api_router, task_ledger_error_handler


logger = logging.getLogger(__name__)


def create_app(ledger_app: TaskLedgerApp | None = None) -> FastAPI:
    """Build the FastAPI application around one TaskLedgerApp."""
    ledger_app = ledger_app or TaskLedgerApp()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan context manager."""
        # Startup
        configure_logfire()
        await ledger_app.startup()
        logger.info("Database initialized")
        yield
        # Shutdown
        await ledger_app.shutdown()

    app = FastAPI(
        title="taskledger",
        description="Task lifecycle, recurrence and points ledger",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.ledger_app = ledger_app

    # Instrument FastAPI with Logfire
    instrument_fastapi(app)

    app.add_exception_handler(TaskLedgerError, task_ledger_error_handler)
    app.include_router(api_router)

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse(content={"status": "healthy"}, status_code=constants.HTTP_OK)

    @app.get("/health/scheduler")
    async def scheduler_health_check() -> JSONResponse:
        """Recurrence trigger health with sweep job status."""
        job_status = await ledger_app.tracker.get_job_status(RECURRENCE_JOB_ID)
        dlq = ledger_app.tracker.get_dead_letter_queue()

        overall_status = "degraded" if job_status["consecutive_failures"] > 0 else "healthy"
        if len(dlq) > 0:
            overall_status = "critical"

        return JSONResponse(
            content={
                "status": overall_status,
                "trigger": ledger_app.config.recurrence_trigger,
                "jobs": {RECURRENCE_JOB_ID: job_status},
                "dead_letter_queue_size": len(dlq),
                "dead_letter_queue": dlq,
            },
            status_code=constants.HTTP_OK if overall_status == "healthy" else constants.HTTP_SERVICE_UNAVAILABLE,
        )

    return app


app = create_app()
