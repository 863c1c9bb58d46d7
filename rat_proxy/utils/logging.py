import logging
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s request_id=%(request_id)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


class RequestIDFilter(logging.Filter):
    """Guarantee a request_id attribute so the formatter never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = None
        return True


logger = logging.getLogger("rat_proxy")


# PUBLIC_INTERFACE
def configure_logging(level: str = "INFO") -> None:
    """
    Configure logging for the proxy and align the uvicorn loggers with it.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(RequestIDFilter())

    root.setLevel(log_level)
    root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.setLevel(log_level)
        for h in list(uv_logger.handlers):
            uv_logger.removeHandler(h)
        uv_logger.addHandler(handler)
        uv_logger.propagate = False


# PUBLIC_INTERFACE
@contextmanager
def timed_log_debug(message: str, request_id: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
    """
    Time a block and log its duration at debug level.

    Usage:
        with timed_log_debug("jira_http_request", extra={"method": "POST", "path": "/search/jql"}):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = int((time.perf_counter() - start) * 1000)
        data: Dict[str, Any] = {"request_id": request_id, "duration_ms": duration_ms}
        if extra:
            data.update(extra)
        logger.debug(message, extra=data)
