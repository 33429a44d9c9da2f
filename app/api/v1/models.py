# app/api/v1/models.py
from typing import Dict

from fastapi import APIRouter, Depends, Query

from app.api.auth import get_current_user
from app.api.dependencies import get_user_api_keys
from app.models.user import User
from app.schemas.users import ModelAccessResponse
from app.services.tier_service import get_model_access_reason, get_model_provider

router = APIRouter()


@router.get("/access", response_model=ModelAccessResponse)
async def get_model_access(
    model: str = Query(..., min_length=1, max_length=100),
    current_user: User = Depends(get_current_user),
    user_api_keys: Dict[str, str] = Depends(get_user_api_keys)
):
    """
    Check whether the current user may invoke a model.

    Provider keys sent as X-Provider-Key-<provider> headers count as
    bring-your-own-key access.
    """
    access = get_model_access_reason(model, current_user, user_api_keys)
    return ModelAccessResponse(
        model=model,
        provider=get_model_provider(model),
        can_access=access.can_access,
        reason=access.reason,
    )
