"""Request logging middleware.

Assigns every request an id (reusing an upstream X-Request-ID when the
marketplace gateway already set one), exposes it on request.state for the
response envelope, echoes it back in the X-Request-ID header and logs one
line per request:

    INFO    [POST] /api/v1/orders/<id>/status → 200 (23ms) req_a1b2c3d4e5f6 client=10.0.0.7
    WARNING [POST] /api/v1/orders/<id>/cancel → 207 (41ms) req_0f9e8d7c6b5a client=10.0.0.7

A 207 means the order change committed but a ledger or history write did
not, so it is logged at WARNING for reconciliation.
"""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.im_common.response import new_request_id

logger = logging.getLogger("im.request")

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_UPSTREAM_ID = re.compile(r"^[A-Za-z0-9_\-]{8,64}$")


def _incoming_request_id(request: Request) -> str:
    upstream = request.headers.get(REQUEST_ID_HEADER, "")
    return upstream if _VALID_UPSTREAM_ID.match(upstream) else new_request_id()


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = _incoming_request_id(request)

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        level = logging.WARNING if response.status_code == 207 else logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) %s client=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.state.request_id,
            request.client.host if request.client else "-",
        )
        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        return response
