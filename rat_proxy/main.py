from __future__ import annotations

import time
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from rat_proxy.api.router import api_router
from rat_proxy.core.config import Settings, get_settings
from rat_proxy.core.credentials import resolve_credentials
from rat_proxy.core.errors import ConfigurationError, install_exception_handlers
from rat_proxy.middleware.cors import CORS_HEADERS, cors_middleware
from rat_proxy.utils.logging import configure_logging, logger


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that attaches a unique request_id to each incoming request
    and includes it in response headers and structured logs.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or f"req-{int(time.time() * 1000)}"
        start = time.perf_counter()
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "unhandled_exception",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                },
            )
            raise

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request_completed",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return response


def read_version() -> str:
    """Installed package version, with a fallback for source checkouts."""
    try:
        return version("rat-jira-proxy")
    except PackageNotFoundError:
        return "0.1.0"


def build_app() -> FastAPI:
    """
    PUBLIC_INTERFACE
    Create and configure the FastAPI application, including routes, middleware, and exception handlers.
    """
    settings: Settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL)

    app = FastAPI(
        title="RAT Jira Proxy",
        description="Server-side proxy between the RAT field-service frontend and the Jira Cloud REST API.",
        version=read_version(),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "health", "description": "Service information and health"},
            {"name": "search", "description": "Paginated JQL search"},
            {"name": "fsa", "description": "FSA lookup and store details"},
            {"name": "workflow", "description": "Issue transitions and attachments"},
        ],
    )

    # Added last so it runs first: preflights never reach routing
    app.add_middleware(RequestIDMiddleware)
    app.middleware("http")(cors_middleware)

    install_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/", tags=["health"], summary="Service info")
    async def root(request: Request) -> Dict[str, Any]:
        """
        PUBLIC_INTERFACE
        Returns basic service information including name and docs URL.
        """
        return {
            "name": "RAT Jira Proxy",
            "environment": settings.APP_ENV,
            "docs_url": str(request.base_url) + "docs",
            "request_id": getattr(request.state, "request_id", None),
        }

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        # Runs outside the middleware stack, so CORS headers are set here
        logger.exception(
            "unhandled_exception",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "path": request.url.path,
                "method": request.method,
            },
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"}, headers=CORS_HEADERS)

    @app.on_event("startup")
    async def validate_config_on_startup():
        try:
            resolve_credentials(get_settings())
        except ConfigurationError as exc:
            logger.warning("jira_not_configured", extra={"reason": exc.message})

    return app


app = build_app()

# For uvicorn: uvicorn rat_proxy.main:app --host 0.0.0.0 --port 3001
