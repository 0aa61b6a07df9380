"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from strive.auth.jwt import verify_token
from strive.database import get_session
from strive.db.models import User

_bearer = HTTPBearer()
_optional_bearer = HTTPBearer(auto_error=False)


async def _load_user(db: AsyncSession, token: str) -> User | None:
    payload = verify_token(token)
    try:
        user_id = int(payload["sub"])
    except ValueError as e:
        msg = "Token subject is not a user id"
        raise jwt.InvalidTokenError(msg) from e
    return await db.get(User, user_id)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Extract and verify the bearer token, return the User. Raises 401 on failure."""
    try:
        user = await _load_user(db, credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_optional_bearer),
    db: AsyncSession = Depends(get_session),
) -> User | None:
    """Like get_current_user, but anonymous or invalid tokens yield None."""
    if credentials is None:
        return None
    try:
        return await _load_user(db, credentials.credentials)
    except jwt.InvalidTokenError:
        return None


def require_self(user_id: int, user: User, detail: str = "You can only modify your own profile") -> None:
    """Raise 403 unless the path user is the authenticated user."""
    if user.id != user_id:
        raise HTTPException(status_code=403, detail=detail)
