"""JWT authentication for platform users (sellers/operators).

Tokens are issued by the platform auth service and signed HS256 with the
shared JWT_SECRET.

Provides:
- verify_token(): Validates JWT and returns its claims
- get_current_user(): FastAPI dependency for authenticated user context
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Depends, HTTPException, Request

_ALGORITHMS = ["HS256"]


@dataclass
class CurrentUser:
    """Authenticated user context."""

    id: int
    email: str | None
    name: str | None
    level: int | None = None


def _get_secret() -> str:
    """Load the JWT secret from environment."""
    return os.environ.get("JWT_SECRET", "")


def verify_token(token: str) -> dict[str, Any]:
    """Verify JWT signature and expiry.

    Args:
        token: JWT token string.

    Returns:
        Decoded claims.

    Raises:
        HTTPException: 401 if auth is not configured or the token is invalid.
    """
    secret = _get_secret()
    if not secret:
        raise HTTPException(status_code=401, detail="Auth not configured")

    try:
        return jwt.decode(token, secret, algorithms=_ALGORITHMS)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def _extract_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header.

    Raises:
        HTTPException: 401 if header missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


def _user_from_claims(claims: dict[str, Any]) -> CurrentUser:
    raw_id = claims.get("userId", claims.get("sub"))
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    level = claims.get("level")
    return CurrentUser(
        id=user_id,
        email=claims.get("email"),
        name=claims.get("nick") or claims.get("name"),
        level=int(level) if isinstance(level, (int, str)) and str(level).isdigit() else None,
    )


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: get authenticated user.

    User id comes from the `userId` claim, falling back to `sub`.

    Raises:
        HTTPException: 401 if token invalid/missing or carries no numeric user id.
    """
    token = _extract_bearer_token(request)
    claims = verify_token(token)
    return _user_from_claims(claims)


# Dependency alias for cleaner imports
CurrentUserDep = Depends(get_current_user)
