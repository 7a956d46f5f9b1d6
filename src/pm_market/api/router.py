"""pm_market REST endpoints.

GET  /markets                      : list with cursor pagination (archived hidden)
GET  /markets/categories           : category names with market counts
GET  /markets/{market_id}          : full detail
POST /markets                      : create (admin)
PUT  /markets/{market_id}          : edit an Open market (admin)
POST /markets/{market_id}/archive  : closed → archived (admin)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_current_user, require_admin
from src.pm_gateway.user.db_models import UserModel
from src.pm_market.application.schemas import CreateMarketRequest, UpdateMarketRequest
from src.pm_market.application.service import MarketApplicationService

router = APIRouter(prefix="/markets", tags=["markets"])

_service = MarketApplicationService()


@router.get("")
async def list_markets(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    status_filter: str | None = Query(
        None,
        alias="status",
        description="Open, closed or archived. Default: everything except archived.",
    ),
    category: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    cursor: str | None = Query(None),
) -> ApiResponse:
    result = await _service.list_markets(db, status_filter, category, cursor, limit)
    return success_response(result.model_dump(), request)


# Declared before /{market_id} so "categories" is not taken as an id.
@router.get("/categories")
async def list_categories(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.list_categories(db)
    return success_response([c.model_dump() for c in result], request)


@router.get("/{market_id}")
async def get_market(
    market_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_market(db, market_id)
    return success_response(result.model_dump(), request)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_market(
    body: CreateMarketRequest,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.create_market(db, body)
    return success_response(result.model_dump(), request)


@router.put("/{market_id}")
async def update_market(
    market_id: str,
    body: UpdateMarketRequest,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.update_market(db, market_id, body)
    return success_response(result.model_dump(), request)


@router.post("/{market_id}/archive")
async def archive_market(
    market_id: str,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.archive_market(db, market_id)
    return success_response(result.model_dump(), request)
