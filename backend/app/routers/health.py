"""Liveness and dependency health endpoints."""

import logging
import sys
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request

from app.config import Settings
from app.security import get_settings_from_app
from app.services.llm_provider import LLMProviderService, get_llm_service
from app.services.report_store import ReportStore, get_report_store

logger = logging.getLogger(__name__)

router = APIRouter()


def _uptime(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_at, 3)


def _peak_memory_mb() -> Optional[int]:
    try:
        import resource
    except ImportError:
        # not available on Windows
        return None
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # kilobytes on Linux, bytes on macOS
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return round(peak / divisor)


@router.get("")
async def health_check(request: Request, settings: Settings = Depends(get_settings_from_app)):
    return {
        "status": "ok",
        "service": settings.app_name,
        "version": settings.app_version,
        "timestamp": datetime.now().isoformat(),
        "uptime": _uptime(request),
    }


@router.get("/detailed")
async def detailed_health_check(
    request: Request,
    settings: Settings = Depends(get_settings_from_app),
    llm_service: LLMProviderService = Depends(get_llm_service),
    store: ReportStore = Depends(get_report_store),
):
    """Health including provider reachability, report directory and memory."""
    checks = {}
    overall = "ok"

    provider_status = await llm_service.get_status()
    checks["provider"] = provider_status
    if provider_status["status"] != "operational":
        overall = "degraded"

    try:
        stats = store.statistics()
        if not store.root.is_dir():
            raise FileNotFoundError(f"Reports directory missing: {store.root}")
        checks["filesystem"] = {
            "status": "operational",
            "reportsDirectory": "accessible",
            "totalFiles": stats["totalFiles"],
        }
    except OSError as e:
        logger.error(f"Filesystem health check failed: {e}")
        checks["filesystem"] = {"status": "error", "error": str(e)}
        overall = "error"

    peak_mb = _peak_memory_mb()
    if peak_mb is None:
        checks["memory"] = {"status": "unavailable", "peakRss": None}
    else:
        checks["memory"] = {"status": "operational", "peakRss": f"{peak_mb}MB"}

    return {
        "status": overall,
        "service": settings.app_name,
        "version": settings.app_version,
        "timestamp": datetime.now().isoformat(),
        "uptime": _uptime(request),
        "checks": checks,
    }
