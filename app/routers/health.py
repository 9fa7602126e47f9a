"""
Health Check Router
Liveness and service status endpoints
"""
from fastapi import APIRouter, Request
from datetime import datetime, timezone
import logging

from app.core.config import settings
from app.utils.scheduler import get_scheduler_status

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/status")
async def service_status(request: Request):
    """
    Report the state of the in-process services:
    - Scheduler (rate-limit cleanup job)
    - Rate limiter (tracked client windows)
    """
    status = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {}
    }

    status["services"]["scheduler"] = get_scheduler_status()

    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        status["services"]["rate_limiter"] = {"enabled": False}
    else:
        status["services"]["rate_limiter"] = {
            "enabled": True,
            "max_requests": limiter.max_requests,
            "window_seconds": limiter.window_seconds,
            "tracked_clients": len(limiter),
        }

    # The limiter works without its cleanup job, it just keeps stale windows longer
    status["overall_status"] = "healthy" if status["services"]["scheduler"]["running"] else "degraded"
    if status["overall_status"] == "degraded":
        logger.warning("Scheduler is not running, rate-limit cleanup is paused")

    return status
