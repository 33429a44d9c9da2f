from app.models.user import User
from app.models.battery import (
    BatteryAccount, BatteryTransaction, DailyModelUsage, DailyUsageSummary, UsageLedgerEntry
)
