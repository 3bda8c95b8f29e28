import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger("agriconnect.request")

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_INCOMING_ID = 64


def _request_id(request: Request) -> str:
    incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if incoming and len(incoming) <= _MAX_INCOMING_ID:
        return incoming
    return uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id (reused from the caller when sane) and logs one JSON line for it."""

    async def dispatch(self, request: Request, call_next):
        req_id = _request_id(request)
        request.state.request_id = req_id
        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = req_id
        logger.info(json.dumps({
            "request_id": req_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "client": request.client.host if request.client else None,
            "duration_ms": round((time.perf_counter() - started) * 1000, 1),
        }))
        return response
