"""
Access token encoding and verification.

Issuance flows (register, login, refresh) live outside this service; this
module only needs to agree with them on secret, algorithm and claims.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from strive.config import get_settings


def create_access_token(user_id: int) -> str:
    """
    Create an access token for a user.

    Args:
        user_id: The user's database ID.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_access_token_expire_days),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an access token.

    Raises:
        jwt.InvalidTokenError: If the signature, expiry, issuer or type is wrong.
    """
    settings = get_settings()
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
        options={"require": ["sub", "exp", "iss"]},
    )
    if payload.get("type") != "access":
        msg = "Token is not an access token"
        raise jwt.InvalidTokenError(msg)
    return payload
