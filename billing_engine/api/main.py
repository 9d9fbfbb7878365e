"""FastAPI host process: runs the background jobs and exposes health and metrics"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Callable, Optional

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session
from starlette.responses import Response

from billing_engine.api.schemas import HealthResponse, ReconciliationReport
from billing_engine.config import settings
from billing_engine.infrastructure.database.session import new_session
from billing_engine.infrastructure.observability.logging import setup_logging
from billing_engine.services.jobs import (
    build_maintenance_worker,
    build_weekly_audit_worker,
    run_startup_reconciliation,
)

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)


def create_app(
    session_factory: Callable[[], Session] = new_session,
    workers_enabled: Optional[bool] = None,
) -> FastAPI:
    """Create and configure FastAPI application"""
    run_workers = settings.workers_enabled if workers_enabled is None else workers_enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.last_reconciliation = None
        if not run_workers:
            yield
            return

        stop_event = asyncio.Event()
        workers = [build_maintenance_worker(session_factory), build_weekly_audit_worker(session_factory)]

        async def startup_reconciliation() -> None:
            app.state.last_reconciliation = await run_startup_reconciliation(session_factory, stop_event=stop_event)

        tasks = [asyncio.create_task(startup_reconciliation(), name="startup-reconciliation")]
        tasks += [asyncio.create_task(worker.run(), name=f"{worker.name}-worker") for worker in workers]
        logger.info("Background jobs started", extra={"jobs": [t.get_name() for t in tasks]})
        try:
            yield
        finally:
            stop_event.set()
            for worker in workers:
                worker.stop()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Background jobs stopped")

    app = FastAPI(
        title="Billing Engine",
        description="Credit-card billing cycle and invoice reconciliation service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.last_reconciliation = None

    # Health check endpoint
    @app.get("/health", response_model=HealthResponse)
    def health_check():
        last = app.state.last_reconciliation
        return HealthResponse(
            service=settings.service_name,
            workers_enabled=run_workers,
            last_reconciliation=ReconciliationReport(**asdict(last)) if last else None,
        )

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
