# app/api/v1/battery.py
from fastapi import APIRouter, Depends

from app.api.auth import get_current_user
from app.api.dependencies import get_service
from app.config import get_settings
from app.models.user import User
from app.schemas.battery import BatteryStatusResponse, DailyUsageResponse
from app.services.battery_ledger import BatteryLedger
from app.services.usage_recorder import UsageRecorder

router = APIRouter()


@router.get("", response_model=BatteryStatusResponse)
async def get_battery_status(
    current_user: User = Depends(get_current_user),
    ledger: BatteryLedger = Depends(get_service(BatteryLedger)),
    recorder: UsageRecorder = Depends(get_service(UsageRecorder))
):
    """
    Get the current user's battery balance, allowance and recent usage.

    The battery account is created on first access.
    """
    settings = get_settings()

    account = await ledger.get_account(current_user.id)
    await ledger.db.commit()
    today_usage = await recorder.get_today_usage(current_user.id)

    history = [
        DailyUsageResponse.model_validate(day, from_attributes=True)
        async for day in recorder.get_user_usage_history(current_user.id, settings.USAGE_HISTORY_DAYS)
    ]
    return BatteryStatusResponse(
        total_balance=account.total_balance,
        daily_allowance=account.daily_allowance,
        last_daily_reset=account.last_daily_reset,
        today_usage=today_usage,
        usage_history=history,
    )
