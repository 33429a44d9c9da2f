"""Tests for tier resolution and model access decisions."""

import pytest

from app.models.enums import AccessReason, UserTier
from app.models.user import User
from app.services.tier_service import (
    TierService,
    can_use_model,
    get_model_access_reason,
    get_model_provider,
    get_user_tier,
)


def free_user():
    return User(id="free-user", tier="free")


def paid_user():
    return User(id="paid-user", tier="paid")


class TestGetUserTier:
    def test_anonymous_is_free(self):
        assert get_user_tier(None) == UserTier.FREE

    def test_stored_tier(self):
        assert get_user_tier(paid_user()) == UserTier.PAID
        assert get_user_tier(free_user()) == UserTier.FREE

    @pytest.mark.parametrize("status,expected", [
        ("active", UserTier.PAID),
        ("trialing", UserTier.PAID),
        ("past_due", UserTier.FREE),
        ("canceled", UserTier.FREE),
        (None, UserTier.FREE),
    ])
    def test_subscription_status_without_tier(self, status, expected):
        assert get_user_tier(User(id="u", subscription_status=status)) == expected


class TestModelProvider:
    @pytest.mark.parametrize("model,provider", [
        ("ollama/llama3", "ollama"),
        ("openai/gpt-4o", "openai"),
        ("gpt-4o-mini", "openai"),
        ("o3-mini", "openai"),
        ("claude-3-5-sonnet-20241022", "anthropic"),
        ("gemini-2.5-pro", "google"),
        ("grok-3", "xai"),
        ("deepseek-chat", "deepseek"),
        ("mystery", "unknown"),
    ])
    def test_provider(self, model, provider):
        assert get_model_provider(model) == provider


class TestModelAccess:
    def test_free_models_for_everyone(self):
        access = get_model_access_reason("ollama/llama3", None)
        assert access.can_access
        assert access.reason is None

    def test_free_user_with_own_key(self):
        access = get_model_access_reason("gpt-4o", free_user(), {"openai": "sk-test"})
        assert access.can_access
        assert access.reason == AccessReason.USING_OWN_KEY

    def test_key_for_another_provider_does_not_help(self):
        access = get_model_access_reason("claude-sonnet-4", free_user(), {"openai": "sk-test"})
        assert not access.can_access
        assert access.reason == AccessReason.NEEDS_UPGRADE

    def test_paid_user_uses_credits(self):
        access = get_model_access_reason("gpt-4o", paid_user())
        assert access.can_access
        assert access.reason == AccessReason.USING_CREDITS

    def test_own_key_wins_over_credits(self):
        access = get_model_access_reason("gpt-4o", paid_user(), {"openai": "sk-test"})
        assert access.reason == AccessReason.USING_OWN_KEY

    def test_can_use_model(self):
        assert can_use_model("ollama/mistral", None)
        assert not can_use_model("gpt-4o", free_user())
        assert can_use_model("gpt-4o", paid_user())


class TestSyncUpgradeStatus:
    async def test_active_subscription_upgrades(self, db, make_user):
        await make_user("user-1", tier="free", subscription_status="active")
        user = await db.get(User, "user-1")

        user = await TierService(db).sync_upgrade_status(user)

        assert user.tier == "paid"
        await db.refresh(user)
        assert user.tier == "paid"

    async def test_lapsed_subscription_downgrades(self, db, make_user):
        await make_user("user-1", tier="paid", subscription_status="canceled")
        user = await db.get(User, "user-1")

        user = await TierService(db).sync_upgrade_status(user)

        assert user.tier == "free"

    async def test_manual_paid_tier_is_kept(self, db, make_user):
        await make_user("user-1", tier="paid")
        user = await db.get(User, "user-1")

        user = await TierService(db).sync_upgrade_status(user)

        assert user.tier == "paid"
