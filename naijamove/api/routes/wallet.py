"""
Wallet endpoints
================

POST /api/v1/wallet/withdrawals -- debit now, payout pending admin review
"""

from fastapi import APIRouter, Depends, Request

from naijamove.api.dependencies import get_engine
from naijamove.api.middleware import limiter
from naijamove.api.schemas import TransactionResponse, WithdrawalRequest
from naijamove.config import settings
from naijamove.services.dispatch import DispatchEngine

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.post(
    "/withdrawals",
    status_code=201,
    response_model=TransactionResponse,
    summary="Request a withdrawal",
    responses={409: {"description": "Amount exceeds the wallet balance."}},
)
@limiter.limit(settings.rate_limit)
async def withdraw_funds(
    request: Request,
    body: WithdrawalRequest,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.withdraw_funds(body.user_id, body.amount)
