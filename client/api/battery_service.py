#!/usr/bin/env python
# Battery service for balance, usage and tier endpoints
from typing import Any, Dict

from client.api.base_service import BaseService


class BatteryService(BaseService):
    """Service for battery-related API operations"""

    async def get_battery(self) -> Dict[str, Any]:
        """Get the balance, daily allowance and recent usage of the signed-in user"""
        return await self.get("/battery")

    async def track_usage(self, conversation_id: str, message_id: str, model: str,
                          input_tokens: int, output_tokens: int, cached: bool = False) -> Dict[str, Any]:
        """
        Report a completed model invocation.

        Raises InsufficientBalanceError when the server refuses the charge.
        """
        payload = {
            "conversationId": conversation_id,
            "messageId": message_id,
            "model": model,
            "inputTokens": input_tokens,
            "outputTokens": output_tokens,
            "cached": cached,
        }
        return await self.post("/usage/track", payload)

    async def get_tier(self) -> str:
        response = await self.get("/user/tier")
        return response.get("tier", "free")

    async def refresh_upgrade_status(self) -> Dict[str, Any]:
        """Ask the server to re-derive the tier after a checkout"""
        return await self.post("/user/upgrade-status")
