#!/usr/bin/env python
# Battery cache shared by every view of the client
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatterySnapshot:
    """Last known battery state of the signed-in user"""

    total_balance: int = 0
    daily_allowance: int = 0
    last_daily_reset: Optional[str] = None
    today_usage: int = 0
    usage_history: List[Dict[str, Any]] = field(default_factory=list)
    last_updated: Optional[datetime] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any], now: Optional[datetime] = None) -> "BatterySnapshot":
        """Build a snapshot from a GET /battery response body"""
        return cls(
            total_balance=data.get("totalBalance", 0),
            daily_allowance=data.get("dailyAllowance", 0),
            last_daily_reset=data.get("lastDailyReset"),
            today_usage=data.get("todayUsage", 0),
            usage_history=list(data.get("usageHistory", [])),
            last_updated=now or datetime.now(timezone.utc),
        )


Listener = Callable[[Optional[BatterySnapshot]], None]


class BatteryStore:
    """
    Holds the cached snapshot and notifies subscribers on every change.

    One store per signed-in session; nothing here is module-global.
    """

    def __init__(self):
        self._snapshot: Optional[BatterySnapshot] = None
        self._listeners: List[Listener] = []

    def get(self) -> Optional[BatterySnapshot]:
        return self._snapshot

    def set(self, snapshot: Optional[BatterySnapshot]):
        self._snapshot = snapshot
        self._notify()

    def clear(self):
        self.set(None)

    def apply_usage(self, new_balance: Optional[int], battery_used: int,
                    now: Optional[datetime] = None) -> Optional[BatterySnapshot]:
        """
        Fold a track-usage response into the cache.

        A None balance (free models) keeps the cached balance. Nothing is
        applied before the first full snapshot has been loaded.
        """
        if self._snapshot is None:
            return None

        self.set(replace(
            self._snapshot,
            total_balance=self._snapshot.total_balance if new_balance is None else new_balance,
            today_usage=self._snapshot.today_usage + battery_used,
            last_updated=now or datetime.now(timezone.utc),
        ))
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Battery listener failed")
