# app/api/v1/users.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from app.api.auth import get_current_user, get_optional_user
from app.api.dependencies import get_service
from app.models.enums import UserTier
from app.models.user import User
from app.schemas.users import TierResponse, UpgradeStatusResponse
from app.services.tier_service import TierService, get_user_tier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tier", response_model=TierResponse)
async def get_tier(
    current_user: Optional[User] = Depends(get_optional_user)
):
    """
    Get the current user's access tier.

    Never fails: anonymous callers and lookup errors resolve to "free".
    """
    try:
        return TierResponse(tier=get_user_tier(current_user))
    except Exception as e:
        logger.error(f"Failed to get user tier: {e}")
        return TierResponse(tier=UserTier.FREE)


@router.post("/upgrade-status", response_model=UpgradeStatusResponse)
async def refresh_upgrade_status(
    current_user: User = Depends(get_current_user),
    tier_service: TierService = Depends(get_service(TierService))
):
    """
    Re-derive the tier from the billing state on the user record.

    Called by clients after returning from checkout, before the billing
    webhook may have been processed.
    """
    user = await tier_service.sync_upgrade_status(current_user)
    tier = get_user_tier(user)
    return UpgradeStatusResponse(
        email=user.email,
        tier=tier,
        subscription_status=user.subscription_status,
        plan=user.plan,
        has_paid_access=tier == UserTier.PAID,
    )
