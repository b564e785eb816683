"""Request context middleware: one id per request, one summary line.

The id is stored in ``request_id_var`` and the logging handler's filter
stamps it on every record emitted while the request is served.  The learner
id is bound later, once ``require_user`` has decoded the bearer token.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from academy.core.logging import request_id_var, user_id_var

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Honor or mint ``X-Request-ID``, time the request, log the outcome."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_token = request_id_var.set(req_id)
        user_token = user_id_var.set(None)
        request.state.request_id = req_id

        start = time.monotonic()
        try:
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "user_id": getattr(request.state, "user_id", None),
                },
            )
        finally:
            user_id_var.reset(user_token)
            request_id_var.reset(request_token)

        response.headers["X-Request-ID"] = req_id
        return response
