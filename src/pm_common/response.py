"""Envelope shared by every JSON endpoint.

    {"code": 0, "message": "success", "data": {...},
     "timestamp": "<iso8601 UTC>", "request_id": "req_..."}

code 0 is success; errors carry the AppError code and data=null.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from starlette.requests import Request


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


def _bind(resp: ApiResponse, request: Request | None) -> ApiResponse:
    # RequestLogMiddleware stores the id on request.state
    if request is not None:
        resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


def success_response(data: Any = None, request: Request | None = None) -> ApiResponse:
    return _bind(ApiResponse(data=data), request)


def error_response(code: int, message: str, request: Request | None = None) -> ApiResponse:
    return _bind(ApiResponse(code=code, message=message, data=None), request)
