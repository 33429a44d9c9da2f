# app/services/plans.py
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class BatteryPlan:
    """Subscription plan expressed in battery units"""
    name: str
    price: float
    total_battery: int
    daily_battery: int  # total_battery / 30


BATTERY_PLANS: Dict[str, BatteryPlan] = {
    plan.name.lower(): plan
    for plan in (
        BatteryPlan("Starter", 4.99, 6000, 200),
        BatteryPlan("Daily", 12.99, 18000, 600),
        BatteryPlan("Power", 29.99, 45000, 1500),
        BatteryPlan("Ultimate", 79.99, 150000, 5000),
    )
}


def get_plan(name: Optional[str]) -> Optional[BatteryPlan]:
    if not name:
        return None
    return BATTERY_PLANS.get(name.lower())
