from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from imagebot.config.logging import get_logger
from imagebot.config.settings import Settings, SettingsDep
from imagebot.infra.database import get_session
from imagebot.v1.core.exceptions import create_success_response
from imagebot.v1.infra.jobs.routes import collect_stats

logger = get_logger(__name__)
router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


@router.get("/healthz", response_model=dict)
async def health_check(
    request: Request,
    settings: Settings = SettingsDep,
    session: AsyncSession = Depends(get_session),
):
    """Health check with database and job manager status."""

    db_health = await _check_database_health(session)

    jobs = None
    manager = getattr(request.app.state, "job_manager", None)
    if manager is not None and db_health.connected:
        try:
            jobs = (await collect_stats(manager)).model_dump()
        except Exception as e:
            # Queue stats failure doesn't fail overall health
            logger.warning("Job stats unavailable", error=str(e))

    health_data = {
        "ok": db_health.connected,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
        "database": db_health.model_dump(),
        "jobs": jobs,
    }

    return create_success_response(data=health_data)


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        response_time_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))
