"""HTTP middleware for the SmartAPIForge API."""

import uuid
import time
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Long-lived responses; logging them on completion says nothing useful
STREAMING_PREFIXES = ("/stream/",)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request with an ID and log method, path, status and duration.

    A client-supplied X-Request-ID is kept so a request can be traced across
    the frontend and the API; otherwise a short random one is generated.
    The ID and the elapsed time are echoed back as response headers.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        if not request.url.path.startswith(STREAMING_PREFIXES):
            logger.info(
                "[%s] %s %s → %s (%sms)",
                request_id,
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )

        return response
