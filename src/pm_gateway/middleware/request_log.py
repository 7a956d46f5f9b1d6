"""Access log plus request-id propagation.

A caller-supplied X-Request-ID is kept (trimmed to 64 chars) so provider
webhooks and client retries can be traced end to end; otherwise a fresh
"req_<12 hex>" id is minted. The id lands in request.state for the
ApiResponse envelope and is echoed back in the X-Request-ID header.

    INFO  POST /api/v1/orders 201 12ms req_a1b2c3d4e5f6
    WARN  POST /api/v1/markets/resolve 500 48ms req_...
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("binary_market.request")

_HEADER = "X-Request-ID"
_MAX_ID_LEN = 64


def _request_id(request: Request) -> str:
    incoming = request.headers.get(_HEADER, "").strip()
    if incoming:
        return incoming[:_MAX_ID_LEN]
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[_HEADER] = request_id

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s %d %.0fms %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        return response
