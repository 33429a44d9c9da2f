#!/usr/bin/env python
# Keeps the battery cache eventually consistent with the server
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from client.api.base_service import APIError, InsufficientBalanceError
from client.api.battery_service import BatteryService
from client.battery.store import BatterySnapshot, BatteryStore
from client.battery.timers import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class Notifier:
    """Where the sync layer reports conditions the user must act on"""

    def insufficient_balance(self, detail: str):
        raise NotImplementedError


class BatterySync:
    """
    Reconciles the local BatteryStore with the server.

    - start(user_id) loads a fresh snapshot and refreshes it every
      resync_interval seconds
    - track_usage() applies the server-returned balance right away and
      schedules a single resync post_usage_delay seconds later
    - visibility and reconnect events trigger an immediate refresh

    track_usage and on_visibility_change are driven by the chat UI that embeds
    the client; the terminal monitor only refreshes and calls on_reconnect on SIGHUP.

    Fetch failures keep the previous cache. The server stays authoritative:
    no cost is ever computed locally.
    """

    def __init__(self, service: BatteryService, store: BatteryStore, scheduler: Scheduler,
                 notifier: Optional[Notifier] = None, resync_interval: float = 30.0,
                 post_usage_delay: float = 1.0,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.service = service
        self.store = store
        self.scheduler = scheduler
        self.notifier = notifier
        self.resync_interval = resync_interval
        self.post_usage_delay = post_usage_delay
        self.clock = clock
        self.user_id: Optional[str] = None
        self._periodic: Optional[TimerHandle] = None
        self._pending_resync: Optional[TimerHandle] = None

    @property
    def running(self) -> bool:
        return self.user_id is not None

    async def start(self, user_id: str):
        """Begin syncing for a user; switching users drops the previous cache"""
        if self.user_id == user_id:
            return
        await self.stop()
        self.user_id = user_id
        await self.refresh()
        self._periodic = self.scheduler.call_every(self.resync_interval, self.refresh)
        logger.info(f"Battery sync started for {user_id}")

    async def stop(self):
        if self._periodic:
            self._periodic.cancel()
            self._periodic = None
        if self._pending_resync:
            self._pending_resync.cancel()
            self._pending_resync = None
        if self.user_id is not None:
            logger.info(f"Battery sync stopped for {self.user_id}")
        self.user_id = None
        self.store.clear()

    async def refresh(self) -> bool:
        """Replace the cache with the server snapshot; False when it could not be fetched"""
        user_id = self.user_id
        if user_id is None:
            return False

        try:
            data = await self.service.get_battery()
        except APIError as e:
            logger.warning(f"Battery refresh failed, keeping cached values: {e.detail}")
            return False

        if self.user_id != user_id:
            # Signed out or switched users while the request was in flight
            return False

        self.store.set(BatterySnapshot.from_response(data, self.clock()))
        return True

    def schedule_resync(self):
        """Refresh once after post_usage_delay, replacing any pending one-shot refresh"""
        if self._pending_resync:
            self._pending_resync.cancel()
        self._pending_resync = self.scheduler.call_later(self.post_usage_delay, self._delayed_resync)

    async def _delayed_resync(self):
        self._pending_resync = None
        await self.refresh()

    async def track_usage(self, conversation_id: str, message_id: str, model: str,
                          input_tokens: int, output_tokens: int, cached: bool = False) -> Dict[str, Any]:
        """
        Report a completed response and update the cache from the server's answer.

        Raises InsufficientBalanceError (after notifying the user) when the
        charge is refused, and APIError for any other failure.
        """
        try:
            result = await self.service.track_usage(
                conversation_id, message_id, model, input_tokens, output_tokens, cached
            )
        except InsufficientBalanceError as e:
            logger.warning(f"Usage for {message_id} refused: {e.detail}")
            if self.notifier:
                self.notifier.insufficient_balance(e.detail)
            if self.running:
                self.schedule_resync()
            raise

        if result.get("duplicate"):
            # Already charged earlier; the resync picks up the current balance
            logger.info(f"Usage for {message_id} was already recorded")
        else:
            self.store.apply_usage(result.get("newBalance"), result.get("batteryUsed", 0), self.clock())

        if self.running:
            self.schedule_resync()
        return result

    async def on_visibility_change(self, visible: bool):
        if visible:
            await self.refresh()

    async def on_reconnect(self):
        await self.refresh()
