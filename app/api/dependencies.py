# app/api/dependencies.py
from typing import Callable, Dict, Type
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db

# Bring-your-own-key headers look like "X-Provider-Key-Openai: sk-..."
PROVIDER_KEY_HEADER_PREFIX = "x-provider-key-"


def get_service(service_class: Type) -> Callable:
    """Factory function to create service dependencies with DB injection"""
    def _get_service(db: AsyncSession = Depends(get_db)):
        return service_class(db)
    return _get_service


def get_user_api_keys(request: Request) -> Dict[str, str]:
    """
    Provider API keys the client supplied for this request.

    Only the provider names matter for access decisions; the keys themselves
    are forwarded to the model provider by the chat layer.
    """
    return {
        name[len(PROVIDER_KEY_HEADER_PREFIX):]: value
        for name, value in request.headers.items()
        if name.lower().startswith(PROVIDER_KEY_HEADER_PREFIX) and value
    }
