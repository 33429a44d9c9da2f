from typing import Optional
from pydantic import Field

from app.schemas.battery import CamelModel
from app.services.usage_recorder import MAX_TOKENS_PER_EVENT


class TrackUsageRequest(CamelModel):
    """A completed model invocation reported by the chat client"""
    conversation_id: str = Field(..., min_length=1, max_length=64)
    message_id: str = Field(..., min_length=1, max_length=64)
    model: str = Field(..., min_length=1, max_length=100)
    input_tokens: int = Field(..., ge=0, le=MAX_TOKENS_PER_EVENT)
    output_tokens: int = Field(..., ge=0, le=MAX_TOKENS_PER_EVENT)
    cached: bool = False


class TrackUsageResponse(CamelModel):
    success: bool = True
    battery_used: int
    new_balance: Optional[int] = None
    duplicate: bool = False
    message: Optional[str] = None
