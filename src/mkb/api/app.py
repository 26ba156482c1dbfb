"""
mkb.api.app

FastAPI app factory for the killboard service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Initialize and dispose shared infrastructure (DB engine, HTTP client,
  job processor, scheduler).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

import httpx
from fastapi import FastAPI

from mkb import __version__
from mkb.api.routers.auth import router as auth_router
from mkb.api.routers.health import router as health_router
from mkb.api.routers.jobs import router as jobs_router
from mkb.api.routers.killmails import router as killmails_router
from mkb.db.init_db import init_db
from mkb.db.session import create_engine, create_sessionmaker
from mkb.esi.client import EsiClient
from mkb.esi.sso import EveSso, SsoConfig
from mkb.jobs.processor import Processor
from mkb.jobs.scheduler import Scheduler
from mkb.observability.logging import configure_logging, get_logger
from mkb.observability.middleware import RequestContextMiddleware
from mkb.services.ingestion import IngestionService
from mkb.settings import Settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    `transport` replaces the network for outbound SSO/ESI calls (tests pass an
    `httpx.MockTransport`).
    """

    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        json=settings.env == "prod",
    )

    app = FastAPI(
        title="mkb killboard",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(jobs_router)
    app.include_router(killmails_router)

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Prod runs Alembic migrations before the service starts.
            await init_db(engine)

        http = httpx.AsyncClient(
            transport=transport,
            timeout=settings.http_timeout_seconds,
            headers={"User-Agent": settings.user_agent, "Accept": "application/json"},
        )
        app.state.http = http
        app.state.sso = EveSso(cfg=SsoConfig.from_settings(settings), http=http)

        service = IngestionService(
            session_factory=app.state.sessionmaker,
            settings=settings,
            sso=app.state.sso,
            esi=EsiClient(settings=settings, http=http),
        )
        processor = Processor(service=service, queue_size=settings.job_queue_size)
        processor.start()
        app.state.processor = processor

        app.state.scheduler = None
        if settings.scheduler_enabled:
            scheduler = Scheduler(processor=processor, settings=settings)
            scheduler.start()
            app.state.scheduler = scheduler

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        scheduler = getattr(app.state, "scheduler", None)
        if scheduler is not None:
            await scheduler.stop()
        processor = getattr(app.state, "processor", None)
        if processor is not None:
            await processor.stop()
        http = getattr(app.state, "http", None)
        if http is not None:
            await http.aclose()
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()
        log.info("shutdown")

    return app


# --- Module Notes -----------------------------------------------------------
# Shutdown order matters: stop producers (scheduler), drain the processor, then
# release the HTTP client and DB pool the processor was using.
