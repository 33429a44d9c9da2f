from typing import Optional

from app.models.enums import AccessReason, UserTier
from app.schemas.battery import CamelModel


class TierResponse(CamelModel):
    tier: UserTier


class UpgradeStatusResponse(CamelModel):
    email: Optional[str] = None
    tier: UserTier
    subscription_status: Optional[str] = None
    plan: Optional[str] = None
    has_paid_access: bool


class ModelAccessResponse(CamelModel):
    model: str
    provider: str
    can_access: bool
    reason: Optional[AccessReason] = None
