import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from services.observability import set_request_id

logger = logging.getLogger("hyprive.http")


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.time()

        # attach to request state
        request.state.request_id = req_id
        set_request_id(req_id)

        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            duration_ms = int((time.time() - start) * 1000)

            # no headers or bodies: they carry tokens
            logger.info(
                "http_request_end request_id=%s method=%s path=%s status=%s duration_ms=%s",
                req_id,
                request.method,
                request.url.path,
                status,
                duration_ms,
            )
            set_request_id(None)
