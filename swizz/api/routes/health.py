"""Health check endpoints.

Provides:
- Basic health check (GET /health)
- Detailed health check with dependency status (GET /health/detailed)
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import text

from swizz import __version__
from swizz.config import Settings
from swizz.db.session import get_session

router = APIRouter()


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response."""

    status: str
    checks: dict[str, str]
    active_sessions: int
    version: str


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="healthy")


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(
    request: Request,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> DetailedHealthResponse:
    """Detailed health check including dependency status.

    Checks:
    - Database connectivity
    - External service configuration status (no API calls are made)
    - Alert webhook configuration
    """
    checks = {}

    try:
        await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {type(e).__name__}"

    checks["groq"] = "configured" if settings.groq_api_key.get_secret_value() else "missing"
    checks["deepgram"] = (
        "configured" if settings.deepgram_api_key.get_secret_value() else "missing"
    )
    checks["elevenlabs"] = (
        "configured" if settings.elevenlabs_api_key.get_secret_value() else "missing"
    )
    checks["alerts"] = "webhook" if settings.notify_webhook_url else "log"

    status = "healthy" if checks["database"] == "ok" else "degraded"

    return DetailedHealthResponse(
        status=status,
        checks=checks,
        active_sessions=request.app.state.registry.active_count,
        version=__version__,
    )
