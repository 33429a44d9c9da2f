# app/services/tier_service.py
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import AccessReason, PAID_SUBSCRIPTION_STATUSES, UserTier
from app.models.user import User
from app.services.pricing import is_free_model

logger = logging.getLogger(__name__)

# Model id prefixes of hosted providers without an explicit "provider/" prefix
_PROVIDER_FAMILIES = (
    ("gpt-", "openai"),
    ("o1", "openai"),
    ("o3", "openai"),
    ("o4", "openai"),
    ("claude-", "anthropic"),
    ("gemini-", "google"),
    ("grok-", "xai"),
    ("deepseek-", "deepseek"),
)


@dataclass(frozen=True)
class ModelAccess:
    can_access: bool
    reason: Optional[AccessReason] = None


def get_user_tier(user: Optional[User]) -> UserTier:
    """
    Derive a user's tier from their record.

    The stored tier wins; an active or trialing subscription also counts as
    paid for records written before the tier column existed.
    """
    if user is None:
        return UserTier.FREE
    if user.tier == UserTier.PAID.value:
        return UserTier.PAID
    if user.subscription_status in PAID_SUBSCRIPTION_STATUSES:
        return UserTier.PAID
    return UserTier.FREE


def get_model_provider(model: str) -> str:
    """Provider name for a model id, "ollama" for local models"""
    model_id = model.strip().lower()
    if is_free_model(model_id):
        return "ollama"
    if "/" in model_id:
        return model_id.split("/", 1)[0]
    for prefix, provider in _PROVIDER_FAMILIES:
        if model_id.startswith(prefix):
            return provider
    return "unknown"


def get_model_access_reason(
    model: str,
    user: Optional[User],
    user_api_keys: Optional[Mapping[str, str]] = None,
) -> ModelAccess:
    """Whether the user may invoke the model, and why"""
    if is_free_model(model):
        return ModelAccess(can_access=True)

    provider = get_model_provider(model)
    if user_api_keys and user_api_keys.get(provider):
        return ModelAccess(can_access=True, reason=AccessReason.USING_OWN_KEY)

    if get_user_tier(user) == UserTier.PAID:
        return ModelAccess(can_access=True, reason=AccessReason.USING_CREDITS)

    return ModelAccess(can_access=False, reason=AccessReason.NEEDS_UPGRADE)


def can_use_model(
    model: str,
    user: Optional[User],
    user_api_keys: Optional[Mapping[str, str]] = None,
) -> bool:
    return get_model_access_reason(model, user, user_api_keys).can_access


class TierService:
    """Persists tier changes derived from the billing state of a user record"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def sync_upgrade_status(self, user: User) -> User:
        """
        Re-derive the tier from the subscription status and store it.

        A lapsed subscription drops a paid user back to free; a user marked
        paid without subscription data keeps the stored tier.
        """
        if user.subscription_status in PAID_SUBSCRIPTION_STATUSES:
            tier = UserTier.PAID
        elif user.subscription_status:
            tier = UserTier.FREE
        else:
            tier = get_user_tier(user)

        if user.tier != tier.value:
            logger.info(f"Tier for user {user.id} changed from {user.tier} to {tier.value}")
            user.tier = tier.value
            await self.db.commit()
        return user
