"""Liveness, readiness and request metrics for the recipe wizard API."""

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.api.dependencies import get_session_store
from app.config import settings
from app.middleware.performance import metrics
from app.wizard.sessions import WizardSessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

STARTED_AT = time.monotonic()


@router.get("")
async def health_check() -> Dict[str, str]:
    """Liveness check; answers as long as the event loop does."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check() -> Dict[str, Any]:
    """Readiness check, called before traffic is routed to this instance."""
    return {
        "status": "ready",
        "storage_backend": settings.storage_backend,
        "gemini_configured": bool(settings.gemini_api_key),
    }


@router.get("/metrics")
async def performance_metrics(store: WizardSessionStore = Depends(get_session_store)) -> Dict[str, Any]:
    # counters are per process and reset on restart
    return {
        "status": "ok",
        "uptime_seconds": round(time.monotonic() - STARTED_AT, 1),
        "live_wizard_sessions": len(store),
        **metrics.get_summary(),
    }
