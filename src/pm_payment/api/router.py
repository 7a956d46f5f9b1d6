"""pm_payment REST endpoints.

POST /wallet/withdraw         : bank payout via Flutterwave
GET  /wallet/withdrawals      : caller's withdrawals, newest first
POST /webhooks/flutterwave    : provider callbacks (signature-checked, no JWT)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_current_user
from src.pm_gateway.user.db_models import UserModel
from src.pm_payment.application.schemas import WithdrawRequest
from src.pm_payment.application.service import PaymentService

wallet_router = APIRouter(prefix="/wallet", tags=["wallet"])
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])

_service = PaymentService()


@wallet_router.post("/withdraw", status_code=status.HTTP_201_CREATED)
async def withdraw(
    body: WithdrawRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.withdraw(db, str(current_user.id), body)
    return success_response(result.model_dump(), request)


@wallet_router.get("/withdrawals")
async def list_withdrawals(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    result = await _service.list_withdrawals(db, str(current_user.id), cursor, limit)
    return success_response(result.model_dump(), request)


@webhook_router.post("/flutterwave")
async def flutterwave_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    raw_body = await request.body()
    result = await _service.handle_webhook(db, raw_body, dict(request.headers))
    return success_response(result.model_dump(), request)
