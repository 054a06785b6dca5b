"""Service-level routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from src.database import health_check as db_health_check

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns:
        Status, database connectivity and timestamp in ISO8601 format
    """
    db_healthy = await db_health_check(getattr(request.app.state, "pool", None))
    return {
        "status": "healthy" if db_healthy else "degraded",
        "database": "healthy" if db_healthy else "unavailable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
