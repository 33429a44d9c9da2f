"""
Schema definitions for the application.
This module exports all schemas for easy importing throughout the app.
"""

# Import from battery
from app.schemas.battery import (
    CamelModel, ModelCount, DailyUsageResponse, BatteryStatusResponse,
    UsageHistoryResponse, BatteryTransactionResponse
)

# Import from usage
from app.schemas.usage import TrackUsageRequest, TrackUsageResponse

# Import from users
from app.schemas.users import TierResponse, UpgradeStatusResponse, ModelAccessResponse
