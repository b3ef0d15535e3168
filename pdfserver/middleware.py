"""HTTP middleware: request logging and request body size limit."""

import time
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from common.logging_config import get_logger

logger = get_logger(__name__)


async def log_requests(request: Request, call_next):
    """
    Log every HTTP request and response, tagged with a request id.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Refuse requests whose declared Content-Length exceeds max_bytes."""

    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request, call_next):
        length = request.headers.get("content-length")
        try:
            size = int(length) if length is not None else None
        except ValueError:
            size = None
        if size is not None and size > self.max_bytes:
            logger.warning(f"Rejected {request.method} {request.url.path}: body of {size} bytes")
            return JSONResponse(
                status_code=413,
                content={
                    "error": "Upload too large",
                    "details": f"Request body exceeds {self.max_bytes} bytes",
                },
            )
        return await call_next(request)
