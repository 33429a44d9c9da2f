"""End-to-end tests of the HTTP surface against a temporary database."""

import pytest

from app.models.user import User
from app.services.battery_ledger import utc_today

TRACK_BODY = {
    "conversationId": "conv-1",
    "messageId": "msg-1",
    "model": "gpt-4o-mini",
    "inputTokens": 1000,
    "outputTokens": 500,
}


class TestAuthentication:
    async def test_missing_token(self, client):
        response = await client.get("/api/battery")
        assert response.status_code == 401

    async def test_bad_signature(self, client):
        response = await client.get("/api/battery", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    async def test_first_call_registers_user(self, client, auth_headers):
        response = await client.get("/api/battery", headers=auth_headers("new-user", email="new@example.com"))
        assert response.status_code == 200

    async def test_email_already_taken_by_another_user(self, client, auth_headers, make_user, session_factory):
        await make_user("user-a", email="same@example.com")
        headers = auth_headers("user-b", email="same@example.com")

        assert (await client.get("/api/battery", headers=headers)).status_code == 200
        assert (await client.post("/api/usage/track", json=TRACK_BODY, headers=headers)).status_code == 402

        async with session_factory() as session:
            assert (await session.get(User, "user-b")).email is None
            assert (await session.get(User, "user-a")).email == "same@example.com"


class TestBatteryStatus:
    async def test_new_user_gets_empty_account(self, client, auth_headers):
        response = await client.get("/api/battery", headers=auth_headers())

        assert response.status_code == 200
        data = response.json()
        assert data["totalBalance"] == 0
        assert data["dailyAllowance"] == 0
        assert data["lastDailyReset"] == utc_today().isoformat()
        assert data["todayUsage"] == 0
        assert len(data["usageHistory"]) == 7
        assert data["usageHistory"][-1]["date"] == utc_today().isoformat()

    async def test_reflects_tracked_usage(self, client, auth_headers, make_user, use_flat_pricing):
        await make_user("user-1", balance=100, daily_allowance=200)
        await client.post("/api/usage/track", json=TRACK_BODY, headers=auth_headers())

        data = (await client.get("/api/battery", headers=auth_headers())).json()

        assert data["totalBalance"] == 70
        assert data["dailyAllowance"] == 200
        assert data["todayUsage"] == 30
        today = data["usageHistory"][-1]
        assert today["totalBatteryUsed"] == 30
        assert today["totalMessages"] == 1
        assert today["models"] == [{"model": "gpt-4o-mini", "count": 1}]


class TestTrackUsage:
    async def test_charges_balance(self, client, auth_headers, make_user, read_balance, use_flat_pricing):
        await make_user("user-1", balance=100)

        response = await client.post("/api/usage/track", json=TRACK_BODY, headers=auth_headers())

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["batteryUsed"] == 30
        assert data["newBalance"] == 70
        assert data["duplicate"] is False
        assert await read_balance("user-1") == 70

    async def test_retry_is_not_charged_again(self, client, auth_headers, make_user, read_balance, use_flat_pricing):
        await make_user("user-1", balance=100)

        await client.post("/api/usage/track", json=TRACK_BODY, headers=auth_headers())
        retry = await client.post("/api/usage/track", json=TRACK_BODY, headers=auth_headers())

        assert retry.status_code == 200
        assert retry.json()["duplicate"] is True
        assert retry.json()["newBalance"] == 70
        assert await read_balance("user-1") == 70

    async def test_insufficient_balance(self, client, auth_headers, make_user, read_balance, use_flat_pricing):
        await make_user("user-1", balance=10)

        response = await client.post("/api/usage/track", json=TRACK_BODY, headers=auth_headers())

        assert response.status_code == 402
        assert response.json()["error"] == "Insufficient battery balance"
        assert await read_balance("user-1") == 10

    async def test_local_model_is_free(self, client, auth_headers, make_user, read_balance):
        await make_user("user-1", balance=0)

        response = await client.post(
            "/api/usage/track", json={**TRACK_BODY, "model": "ollama/llama3"}, headers=auth_headers()
        )

        assert response.status_code == 200
        data = response.json()
        assert data["batteryUsed"] == 0
        assert data["newBalance"] is None
        assert data["message"] == "Local models are free"
        assert await read_balance("user-1") == 0

    @pytest.mark.parametrize("missing", ["conversationId", "messageId", "model", "inputTokens", "outputTokens"])
    async def test_missing_fields(self, client, auth_headers, missing):
        body = {k: v for k, v in TRACK_BODY.items() if k != missing}

        response = await client.post("/api/usage/track", json=body, headers=auth_headers())

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields"

    async def test_negative_tokens(self, client, auth_headers):
        response = await client.post(
            "/api/usage/track", json={**TRACK_BODY, "inputTokens": -1}, headers=auth_headers()
        )
        assert response.status_code == 400

    @pytest.mark.parametrize("field", ["inputTokens", "outputTokens"])
    async def test_oversized_token_counts(self, client, auth_headers, make_user, read_balance, use_flat_pricing, field):
        await make_user("user-1", balance=100)

        response = await client.post(
            "/api/usage/track", json={**TRACK_BODY, field: 10**22}, headers=auth_headers()
        )

        assert response.status_code == 400
        assert await read_balance("user-1") == 100

    async def test_unknown_model(self, client, auth_headers, make_user, read_balance):
        await make_user("user-1", balance=100)

        response = await client.post(
            "/api/usage/track", json={**TRACK_BODY, "model": "acme/unpriced-1"}, headers=auth_headers()
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Unknown model"
        assert await read_balance("user-1") == 100

    async def test_requires_authentication(self, client):
        response = await client.post("/api/usage/track", json=TRACK_BODY)
        assert response.status_code == 401


class TestUsageHistory:
    async def test_history_days(self, client, auth_headers, make_user, use_flat_pricing):
        await make_user("user-1", balance=100)
        await client.post("/api/usage/track", json=TRACK_BODY, headers=auth_headers())

        response = await client.get("/api/usage/history", params={"days": 3}, headers=auth_headers())

        assert response.status_code == 200
        data = response.json()
        assert data["days"] == 3
        assert [d["totalBatteryUsed"] for d in data["usageHistory"]] == [0, 0, 30]

    @pytest.mark.parametrize("days", [0, 366])
    async def test_history_days_out_of_range(self, client, auth_headers, days):
        response = await client.get("/api/usage/history", params={"days": days}, headers=auth_headers())
        assert response.status_code == 400

    async def test_transactions(self, client, auth_headers, make_user, use_flat_pricing):
        await make_user("user-1", balance=100)
        await client.post("/api/usage/track", json=TRACK_BODY, headers=auth_headers())

        response = await client.get("/api/usage/transactions", headers=auth_headers())

        assert response.status_code == 200
        [transaction] = response.json()
        assert transaction["type"] == "usage"
        assert transaction["amount"] == -30
        assert transaction["balanceAfter"] == 70
        assert transaction["metadata"]["messageId"] == "msg-1"


class TestUserTier:
    async def test_anonymous_is_free(self, client):
        response = await client.get("/api/user/tier")
        assert response.status_code == 200
        assert response.json() == {"tier": "free"}

    async def test_invalid_token_is_free(self, client):
        response = await client.get("/api/user/tier", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 200
        assert response.json() == {"tier": "free"}

    async def test_paid_user(self, client, auth_headers, make_user):
        await make_user("user-1", tier="paid")
        response = await client.get("/api/user/tier", headers=auth_headers())
        assert response.json() == {"tier": "paid"}

    async def test_upgrade_status_after_checkout(self, client, auth_headers, make_user):
        await make_user("user-1", email="a@example.com", tier="free", subscription_status="active", plan="Power")

        response = await client.post("/api/user/upgrade-status", headers=auth_headers())

        assert response.status_code == 200
        data = response.json()
        assert data["tier"] == "paid"
        assert data["hasPaidAccess"] is True
        assert data["plan"] == "Power"
        tier = await client.get("/api/user/tier", headers=auth_headers())
        assert tier.json() == {"tier": "paid"}


class TestModelAccess:
    async def test_free_user_needs_upgrade(self, client, auth_headers):
        response = await client.get("/api/models/access", params={"model": "gpt-4o"}, headers=auth_headers())

        assert response.status_code == 200
        assert response.json() == {
            "model": "gpt-4o",
            "provider": "openai",
            "canAccess": False,
            "reason": "needs-upgrade",
        }

    async def test_own_key_header(self, client, auth_headers):
        headers = {**auth_headers(), "X-Provider-Key-Openai": "sk-test"}
        response = await client.get("/api/models/access", params={"model": "gpt-4o"}, headers=headers)

        assert response.json()["canAccess"] is True
        assert response.json()["reason"] == "using-own-key"

    async def test_local_model(self, client, auth_headers):
        response = await client.get("/api/models/access", params={"model": "ollama/llama3"}, headers=auth_headers())

        assert response.json()["canAccess"] is True
        assert response.json()["reason"] is None


async def test_health(client):
    response = await client.get("/")
    assert response.json()["status"] == "online"
