"""Tests for the battery maintenance command."""

from datetime import date
from unittest.mock import AsyncMock, patch

from app import manage_battery
from app.services.exceptions import InvalidRequest


def test_reset_daily_with_date():
    with patch.object(manage_battery, "reset_daily", AsyncMock(return_value=3)) as reset:
        assert manage_battery.main(["reset-daily", "--date", "2025-03-14"]) == 0
    reset.assert_awaited_once_with(date(2025, 3, 14))


def test_grant_plan():
    with patch.object(manage_battery, "grant_plan", AsyncMock()) as grant:
        assert manage_battery.main(["grant-plan", "user-1", "power"]) == 0
    grant.assert_awaited_once_with("user-1", "power")


def test_failure_exit_code():
    with patch.object(manage_battery, "top_up", AsyncMock(side_effect=InvalidRequest("Top-up units must be positive"))):
        assert manage_battery.main(["top-up", "user-1", "0"]) == 1
