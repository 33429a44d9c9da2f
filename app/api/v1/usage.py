# app/api/v1/usage.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.auth import get_current_user
from app.api.dependencies import get_service
from app.config import get_settings
from app.models.user import User
from app.schemas.battery import BatteryTransactionResponse, DailyUsageResponse, UsageHistoryResponse
from app.schemas.usage import TrackUsageRequest, TrackUsageResponse
from app.services.battery_ledger import BatteryLedger
from app.services.exceptions import InvalidRequest
from app.services.usage_recorder import UsageEvent, UsageRecorder

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/track", response_model=TrackUsageResponse)
async def track_usage(
    request: TrackUsageRequest,
    current_user: User = Depends(get_current_user),
    recorder: UsageRecorder = Depends(get_service(UsageRecorder))
):
    """
    Record a completed model invocation and charge its battery cost.

    Local models are free. Re-sending a messageId returns the original
    charge without debiting again. Returns 402 when the balance is too low.
    """
    result = await recorder.track_usage(UsageEvent(
        user_id=current_user.id,
        conversation_id=request.conversation_id,
        message_id=request.message_id,
        model=request.model,
        input_tokens=request.input_tokens,
        output_tokens=request.output_tokens,
        cached=request.cached,
    ))

    return TrackUsageResponse(
        battery_used=result.battery_used,
        new_balance=result.new_balance,
        duplicate=result.duplicate,
        message="Local models are free" if result.free else None,
    )


@router.get("/history", response_model=UsageHistoryResponse)
async def get_usage_history(
    days: Optional[int] = Query(None, description="Number of trailing days (defaults to USAGE_HISTORY_DAYS)"),
    current_user: User = Depends(get_current_user),
    recorder: UsageRecorder = Depends(get_service(UsageRecorder))
):
    """
    Get battery usage per day for the trailing period, oldest first.

    Days without usage are reported with zero usage.
    """
    settings = get_settings()
    days = days if days is not None else settings.USAGE_HISTORY_DAYS
    if not 1 <= days <= settings.MAX_USAGE_HISTORY_DAYS:
        raise InvalidRequest(f"days must be between 1 and {settings.MAX_USAGE_HISTORY_DAYS}")

    history = [
        DailyUsageResponse.model_validate(day, from_attributes=True)
        async for day in recorder.get_user_usage_history(current_user.id, days)
    ]
    return UsageHistoryResponse(days=days, usage_history=history)


@router.get("/transactions", response_model=List[BatteryTransactionResponse])
async def get_transactions(
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    ledger: BatteryLedger = Depends(get_service(BatteryLedger))
):
    """
    Get the most recent battery transactions for the current user.
    """
    return await ledger.list_transactions(current_user.id, limit)
