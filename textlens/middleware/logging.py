"""
TextLens Backend — Request Logging Middleware
===============================================

What:  One access-log line per request, with duration and caller.
When:  Inside RequestIDMiddleware, so the request id is already set.

Line format:
    POST /ocr/upload 201 812.4ms [a1b2c3d4] user=google-oauth2|123 from 10.0.0.7

What we log vs what we don't:
    Log:       method, path, status, duration, client IP, request id, caller id
    Don't log: bodies, uploaded images, Authorization header, extracted text
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from textlens.middleware.request_id import request_id_var

logger = logging.getLogger("textlens.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Level follows the status: 5xx → ERROR, 4xx → WARNING, otherwise INFO.
    /health is not logged; probes hit it every few seconds.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        # Set by get_current_user once the token is verified
        caller = getattr(request.state, "user", None)
        user_id = caller.id if caller is not None else "-"

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            user_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "user_id": user_id,
            },
        )

        return response
