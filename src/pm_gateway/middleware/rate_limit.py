"""Fixed-window rate limiting on order placement, backed by Redis.

Key: "ratelimit:orders:{subject}" where subject is the JWT subject when the
request carries a valid access token, otherwise the client IP (first hop of
X-Forwarded-For when behind a proxy). Runs before routing, so the 429 is
rendered here rather than by the AppError handler.
"""

import logging

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from config.settings import settings
from src.pm_common.errors import AppError, RateLimitError
from src.pm_common.redis_client import get_redis, hit_window
from src.pm_common.response import error_response
from src.pm_gateway.auth.jwt_handler import decode_token

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60
_LIMITED_ROUTES = {("POST", "/api/v1/orders")}


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _subject(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        try:
            return "user:" + decode_token(auth[7:], expected_type="access")["sub"]
        except (AppError, KeyError):
            pass
    return "ip:" + _client_ip(request)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limit_per_minute: int | None = None) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self._limit = limit_per_minute or settings.RATE_LIMIT_ORDERS_PER_MINUTE

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if (request.method, request.url.path.rstrip("/")) not in _LIMITED_ROUTES:
            return await call_next(request)

        key = f"ratelimit:orders:{_subject(request)}"
        try:
            redis = await get_redis()
            count = await hit_window(redis, key, _WINDOW_SECONDS)
        except RedisError:
            # Limiter state is losable; keep serving if Redis is down
            logger.warning("Rate limiter unavailable, allowing request key=%s", key)
            return await call_next(request)

        if count > self._limit:
            err = RateLimitError()
            logger.warning("Rate limit exceeded key=%s count=%d", key, count)
            body = error_response(err.code, err.message, request)
            return JSONResponse(
                status_code=err.http_status,
                content=body.model_dump(),
                headers={"Retry-After": str(_WINDOW_SECONDS)},
            )
        return await call_next(request)
