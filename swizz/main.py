"""FastAPI application entry point.

Swizz - an agent that waits on hold and hands the call back when a human answers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket

from swizz import __version__
from swizz.api.routes import health, metrics
from swizz.api.websocket.media_stream import (
    CallServices,
    CallSessionRegistry,
    media_stream_endpoint,
)
from swizz.config import Settings, get_settings
from swizz.db.session import close_db, get_engine, init_db
from swizz.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup:
    - Initialize logging
    - Create tables outside production

    Shutdown:
    - Close live media stream sessions
    - Close database connections
    """
    settings: Settings = app.state.settings

    setup_logging(
        level=settings.log_level,
        enable_file=settings.is_production,
    )

    # Production should use: alembic upgrade head
    if not settings.is_production:
        await init_db(get_engine(settings))

    yield

    await app.state.registry.close_all()
    await close_db()


def get_call_services(app: FastAPI) -> CallServices:
    """Shared service clients, created on first use."""
    if app.state.services is None:
        app.state.services = CallServices.from_settings(app.state.settings)
    return app.state.services


def create_app(
    settings: Settings | None = None,
    services: CallServices | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Swizz API",
        description="Delegated phone calls with live-human detection",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services
    app.state.registry = CallSessionRegistry(max_sessions=settings.max_concurrent_calls)

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # Metrics endpoint for Prometheus scraping
    app.include_router(metrics.router, tags=["Observability"])

    # WebSocket endpoint for the telephony media stream
    @app.websocket("/ws/audio/{call_id}")
    async def audio_ws(websocket: WebSocket, call_id: str):
        """WebSocket endpoint for the call's media stream."""
        await media_stream_endpoint(
            websocket,
            call_id,
            services=get_call_services(app),
            settings=settings,
            registry=app.state.registry,
        )

    return app


def run() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "swizz.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
