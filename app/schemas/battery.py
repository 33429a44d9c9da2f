from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes field names as camelCase for the web and mobile clients"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ModelCount(CamelModel):
    model: str
    count: int


class DailyUsageResponse(CamelModel):
    """Battery used on one day"""
    date: date
    total_battery_used: int
    total_messages: int = 0
    models: List[ModelCount] = []


class BatteryStatusResponse(CamelModel):
    """Current battery snapshot for the signed-in user"""
    total_balance: int
    daily_allowance: int
    last_daily_reset: Optional[date] = None
    today_usage: int = 0
    usage_history: List[DailyUsageResponse] = []


class UsageHistoryResponse(CamelModel):
    days: int
    usage_history: List[DailyUsageResponse]


class BatteryTransactionResponse(CamelModel):
    id: str
    type: str
    amount: int
    balance_after: int
    description: Optional[str] = None
    details: Optional[Dict] = Field(default=None, serialization_alias="metadata")
    created_at: datetime
