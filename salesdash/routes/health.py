"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Depends

from salesdash.config import settings
from salesdash.routes.dashboard import get_cache_coordinator
from salesdash.services.cache.coordinator import CacheCoordinator

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "sales-dashboard"}


@router.get("/readyz")
async def readyz(cache: CacheCoordinator = Depends(get_cache_coordinator)):
    """
    Readiness check: configuration and cache state.

    Demo mode is reported but does not fail readiness.
    """
    checks = {}
    overall_ok = True

    # 1) Configuration checks
    config_issues = []
    if not settings.is_gateway_configured():
        config_issues.append("GATEWAY_BASE_URL not set (demo mode)")
    elif not settings.GATEWAY_TOKEN:
        config_issues.append("GATEWAY_TOKEN not set")

    try:
        settings.timezone()
        timezone_ok = True
    except Exception as e:
        config_issues.append(f"Invalid DASHBOARD_TIMEZONE: {type(e).__name__}: {e}")
        timezone_ok = False

    checks["configuration"] = {
        "ok": timezone_ok,
        "demo_mode": cache.is_demo_mode,
        "issues": config_issues if config_issues else None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and timezone_ok

    # 2) Cache state
    state = cache.get_cache_state()
    age = cache.snapshot_age_seconds()
    checks["cache"] = {
        "ok": state.error is None,
        "has_data": state.data is not None,
        "loading": state.loading,
        "snapshot_age_seconds": round(age, 1) if age is not None else None,
    }
    if state.error is not None:
        checks["cache"]["error"] = f"{type(state.error).__name__}: {state.error}"
        checks["cache"]["is_network_error"] = state.is_network_error
    overall_ok = overall_ok and state.error is None

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
