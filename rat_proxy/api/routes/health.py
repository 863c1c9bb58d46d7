import time

from fastapi import APIRouter, Depends, Request

from rat_proxy.api.dependencies import get_app_settings
from rat_proxy.core.config import Settings
from rat_proxy.core.credentials import resolve_credentials
from rat_proxy.core.errors import ConfigurationError

router = APIRouter(prefix="", tags=["health"])

START_TIME = time.time()


@router.get(
    "/health",
    summary="Health check",
    description="Returns service liveness status and uptime.",
)
# PUBLIC_INTERFACE
def health(request: Request):
    """Basic liveness endpoint."""
    return {
        "status": "ok",
        "uptime_seconds": int(time.time() - START_TIME),
        "request_id": getattr(request.state, "request_id", None),
    }


@router.get(
    "/ready",
    summary="Readiness check",
    description="Checks that Jira credentials and a base URL are configured.",
)
# PUBLIC_INTERFACE
def ready(settings: Settings = Depends(get_app_settings)):
    """Readiness endpoint indicating if minimal JIRA configuration exists."""
    try:
        resolve_credentials(settings)
        ready_state, reason = True, None
    except ConfigurationError as exc:
        ready_state, reason = False, exc.message
    return {
        "success": ready_state,
        "status": "ready" if ready_state else "not_ready",
        "jiraConfigured": ready_state,
        "reason": reason,
    }
