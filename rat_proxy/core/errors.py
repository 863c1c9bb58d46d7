from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rat_proxy.core.config import get_settings

logger = logging.getLogger("rat_proxy.errors")

MISSING_JQL_MESSAGE = "Missing required body parameter: jql"
PARSE_ERROR_MESSAGE = "Failed to parse Jira response"
PARSE_DETAILS_LIMIT = 500


class ProxyError(Exception):
    """Base error for the proxy. Carries the HTTP status the caller receives."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def payload(self, redact: bool = False) -> Dict[str, Any]:
        content: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            content["details"] = self.details
        return content


class ConfigurationError(ProxyError):
    """Required deployment configuration is missing."""

    status_code = 500


class ValidationError(ProxyError):
    """Malformed inbound request."""

    status_code = 400


class JiraApiError(ProxyError):
    """Jira answered with a non-2xx status."""

    def __init__(self, upstream_status: int, body: str, jql: Optional[str] = None):
        self.upstream_status = upstream_status
        self.body = body
        self.jql = jql
        # non-error statuses (e.g. an unfollowed redirect) cannot be relayed as-is
        status_code = upstream_status if 400 <= upstream_status < 600 else 502
        super().__init__(f"Jira API error ({upstream_status})", status_code=status_code)

    @property
    def upstream(self) -> Any:
        try:
            return json.loads(self.body)
        except ValueError:
            return self.body

    def payload(self, redact: bool = False) -> Dict[str, Any]:
        details: Dict[str, Any] = {"status": self.upstream_status}
        if not redact:
            details["upstream"] = self.upstream
        content: Dict[str, Any] = {"error": self.message, "details": details}
        if self.jql is not None:
            details["jql"] = self.jql
            content["jql"] = self.jql
        return content


class ParseError(ProxyError):
    """Jira answered 2xx with a body that is not JSON."""

    status_code = 500

    def __init__(self, body: str):
        self.body = body
        super().__init__(PARSE_ERROR_MESSAGE, details=body[:PARSE_DETAILS_LIMIT])

    def payload(self, redact: bool = False) -> Dict[str, Any]:
        if redact:
            return {"error": self.message}
        return super().payload()


class UpstreamTimeoutError(ProxyError):
    """No answer from Jira within the per-call timeout or the search deadline."""

    status_code = 504


class UpstreamRequestError(ProxyError):
    """Jira could not be reached at all (DNS, connection refused, TLS)."""

    status_code = 502


class PaginationExceeded(ProxyError):
    """Jira kept returning page tokens past the configured page limit."""

    status_code = 502

    def __init__(self, max_pages: int):
        super().__init__(
            f"Jira search exceeded the maximum of {max_pages} pages",
            details={"max_pages": max_pages},
        )


class FsaNotFoundError(ProxyError):
    """An FSA search returned no issues."""

    status_code = 404


class TransitionUnavailableError(ProxyError):
    """The requested workflow transition is not offered for the issue."""

    status_code = 409


def _error_json(status_code: int, content: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content), headers=headers)


def _validation_message(errors: List[Dict[str, Any]]) -> str:
    """Summarise the first request validation error in the proxy's message style."""
    for err in errors:
        loc = list(err.get("loc") or ())
        if len(loc) < 2 or not isinstance(loc[1], str):
            continue
        source, name = loc[0], loc[1]
        if err.get("type") == "missing" or name == "jql":
            return f"Missing required {source} parameter: {name}"
        return f"Invalid {source} parameter: {name}"
    return "Invalid request body"


def install_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError):
        request_id = getattr(request.state, "request_id", None)
        if exc.status_code >= 500 or isinstance(exc, JiraApiError):
            logger.warning(
                "proxy_error",
                extra={
                    "request_id": request_id,
                    "error_type": type(exc).__name__,
                    "status_code": exc.status_code,
                    "error_message": exc.message,
                },
            )
        redact = get_settings().REDACT_UPSTREAM_DETAILS
        return _error_json(exc.status_code, exc.payload(redact=redact))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_: Request, exc: StarletteHTTPException):
        return _error_json(exc.status_code, {"error": str(exc.detail)}, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError):
        errors = list(exc.errors())
        return _error_json(400, {"error": _validation_message(errors), "details": errors})
