# src/pm_order/api/router.py
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.enums import OrderStatus
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_current_user
from src.pm_gateway.user.db_models import UserModel
from src.pm_order.application import service as svc
from src.pm_order.application.schemas import PlaceOrderRequest

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def place_order(
    req: PlaceOrderRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await svc.place_order(req, str(current_user.id), db)
    return success_response(result.model_dump(mode="json"), request)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await svc.cancel_order(order_id, str(current_user.id), db)
    return success_response(result.model_dump(), request)


@router.get("")
async def list_orders(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    market_id: str | None = Query(None, description="Filter by market ID"),
    status_filter: OrderStatus | None = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    cursor: str | None = Query(None, description="Pagination cursor (order ID)"),
) -> ApiResponse:
    result = await svc.list_orders(
        str(current_user.id),
        market_id,
        status_filter.value if status_filter else None,
        limit,
        cursor,
        db,
    )
    return success_response(result.model_dump(mode="json"), request)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await svc.get_order(order_id, str(current_user.id), db)
    return success_response(result.model_dump(mode="json"), request)
