import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from equipsearch.common.logging import get_logger

logger = get_logger("middleware")

SLOW_REQUEST_MS = 3000


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        log = logger.warning if duration_ms >= SLOW_REQUEST_MS else logger.info
        log("%s %s %d %.1fms", request.method, target, response.status_code, duration_ms)

        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        return response
