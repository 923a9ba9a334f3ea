"""
Ticket Engine API - Main Application Entry Point

Ticket issuance and gate redemption:
- Capacity-safe ticket sales with persisted holds and guarded counters
- Usage-bounded promo codes
- Exactly-once redemption under concurrent gate scans
- Structured logging with request correlation and Prometheus metrics
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ticket_engine.api.errors import register_exception_handlers
from ticket_engine.api.middleware import RequestLoggingMiddleware
from ticket_engine.api.router import api_router
from ticket_engine.core.config import get_settings
from ticket_engine.core.logging import get_logger, setup_logging
from ticket_engine.core.metrics import metrics_endpoint
from ticket_engine.infrastructure.redis_client import close_redis, redis_status
from ticket_engine.services.capacity_ledger import CapacityLedger
from ticket_engine.services.engine import TicketEngine, build_engine, redis_backed_collaborators
from ticket_engine.stores.factory import create_store

settings = get_settings()
logger = get_logger(__name__)


async def sweep_expired_holds(ledger: CapacityLedger, interval: float) -> None:
    """Give back capacity from purchases that never finished (crashed workers, abandoned payments)."""
    while True:
        await asyncio.sleep(interval)
        try:
            await ledger.release_expired()
        except Exception:
            # next pass retries; the holds stay expired until released
            logger.exception("hold_sweep_failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        store=settings.STORE_BACKEND,
    )

    owns_engine = getattr(app.state, "engine", None) is None
    if owns_engine:
        store = create_store()
        await store.initialize()
        publisher, tally = await redis_backed_collaborators()
        app.state.engine = build_engine(store, publisher=publisher, tally=tally)

    engine: TicketEngine = app.state.engine
    sweeper = asyncio.create_task(
        sweep_expired_holds(engine.ledger, settings.HOLD_SWEEP_INTERVAL_SECONDS),
        name="hold-sweeper",
    )

    yield

    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass

    if owns_engine:
        await engine.store.close()
        await close_redis()
    logger.info("application_shutdown")


def create_app(engine: Optional[TicketEngine] = None) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Ticket issuance and exactly-once gate redemption",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    if engine is not None:
        app.state.engine = engine

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for Docker and load balancers."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "store": settings.STORE_BACKEND,
            "redis": await redis_status(),
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return metrics_endpoint()

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()
