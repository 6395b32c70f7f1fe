"""
Request logging middleware. Logs method, path, status and duration.
Request bodies (topics) are logged by the fetch pipeline, not here.
"""
import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"


def request_log_level(path: str, status: int) -> int:
    """Errors always surface; successful requests outside /api/ (assets, /health) stay at DEBUG."""
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    if path.startswith(API_PREFIX):
        return logging.INFO
    return logging.DEBUG


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.scope.get("path", "")
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.log(
            request_log_level(path, response.status_code),
            "request_finished method=%s path=%s status=%s duration_ms=%.1f",
            request.method, path, response.status_code, duration_ms,
        )
        return response
