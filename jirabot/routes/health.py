"""
Health check endpoints

Provides two endpoints:
- GET /api/v1/health - Basic health check
- GET /api/v1/health/dependencies - Jira reachability
"""
import time
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field

from jirabot import __version__
from jirabot.exceptions import JiraBotError
from jirabot.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/health", tags=["health"])

# Application start time for uptime calculation
APP_START_TIME = time.time()


class HealthResponse(BaseModel):
    """Basic health check response"""
    status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = Field(..., description="Application version")
    uptime_seconds: float = Field(..., description="Application uptime in seconds")


class DependencyStatus(BaseModel):
    """Status of a single dependency"""
    name: str
    status: str
    latency_ms: Optional[float] = None
    error_message: Optional[str] = None


class DependencyHealth(BaseModel):
    """Dependency health check response"""
    overall_status: str
    dependencies: Dict[str, DependencyStatus]
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@router.get("", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def basic_health_check() -> HealthResponse:
    """Always healthy while the process serves requests"""
    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=round(time.time() - APP_START_TIME, 2)
    )


@router.get("/dependencies", response_model=DependencyHealth, status_code=status.HTTP_200_OK)
async def dependency_health_check(request: Request) -> DependencyHealth:
    """
    Check that Jira answers serverInfo

    Always returns 200; the body carries the status.
    """
    jira = getattr(request.app.state, "jira", None)
    if jira is None:
        dependency = DependencyStatus(
            name="jira",
            status="degraded",
            error_message="Jira client not configured"
        )
    else:
        start = time.time()
        try:
            await jira.ping()
            dependency = DependencyStatus(
                name="jira",
                status="healthy",
                latency_ms=round((time.time() - start) * 1000, 2)
            )
        except JiraBotError as e:
            logger.error(f"Jira health check failed: {e}")
            dependency = DependencyStatus(name="jira", status="unhealthy", error_message=str(e))

    return DependencyHealth(
        overall_status=dependency.status,
        dependencies={"jira": dependency}
    )
