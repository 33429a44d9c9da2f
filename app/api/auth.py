# app/api/auth.py
import logging
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.models.user import User

logger = logging.getLogger(__name__)

# Setup security scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify a JWT issued by the identity provider and return its payload.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            options={"verify_aud": settings.AUTH_JWT_AUDIENCE is not None},
        )
    except jwt.PyJWTError:
        raise _unauthorized("Invalid token")

    if not payload.get("sub"):
        raise _unauthorized("Invalid token: missing subject")
    return payload


async def _insert_user(db: AsyncSession, user_id: str, email: Optional[str], name: Optional[str]) -> bool:
    db.add(User(id=user_id, email=email, name=name))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return False
    return True


async def _get_or_create_user(db: AsyncSession, payload: Dict[str, Any]) -> User:
    user_id = payload["sub"]
    user = await db.get(User, user_id)
    if user:
        return user

    # The identity provider knows the user but we have not seen them yet
    email, name = payload.get("email"), payload.get("name")
    if not await _insert_user(db, user_id, email, name):
        # Either another request created the same user concurrently,
        # or the email already belongs to a different user
        user = await db.get(User, user_id)
        if user:
            return user
        logger.warning(f"Email for user {user_id} is registered to another user; storing the user without it")
        await _insert_user(db, user_id, None, name)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one()
    logger.info(f"Registered user {user_id} from identity token")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user from a bearer token.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    payload = verify_token(credentials.credentials)
    return await _get_or_create_user(db, payload)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """
    Like get_current_user, but resolves to None instead of raising.
    """
    if credentials is None:
        return None
    try:
        payload = verify_token(credentials.credentials)
        return await _get_or_create_user(db, payload)
    except Exception as e:
        logger.warning(f"Ignoring unusable credentials: {e}")
        return None
