# src/pm_admin/api/router.py
"""Admin REST API.

POST /markets/resolve             : settle a market (admin)
GET  /admin/markets/{id}/stats    : per-market order statistics (admin)
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_admin.application.schemas import ResolveMarketRequest
from src.pm_admin.application.service import AdminService
from src.pm_common.database import get_db_session
from src.pm_common.enums import MarketOutcome
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import require_admin
from src.pm_gateway.user.db_models import UserModel

router = APIRouter(prefix="/admin", tags=["admin"])
resolve_router = APIRouter(prefix="/markets", tags=["admin"])
_service = AdminService()


@resolve_router.post("/resolve")
async def resolve_market(
    body: ResolveMarketRequest,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.resolve_market(body.market_id, MarketOutcome(body.result), db)
    return success_response(result.model_dump(), request)


@router.get("/markets/{market_id}/stats")
async def market_stats(
    market_id: str,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_market_stats(market_id, db)
    return success_response(result.model_dump(), request)
