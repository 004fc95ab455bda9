from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cloudstore.core.config import Settings, get_settings
from cloudstore.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


def decode_access_token(token: str, *, secret: str) -> Mapping[str, Any]:
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="JWT secret is not configured",
        )

    secret = secret.strip().strip('"')
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def build_user_from_claims(claims: Mapping[str, Any]) -> User:
    user_id = claims.get("sub") or claims.get("user_id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token missing user id")

    user_metadata = claims.get("user_metadata") or {}
    app_metadata = claims.get("app_metadata") or {}
    email = claims.get("email") or user_metadata.get("email")
    role = claims.get("role") or app_metadata.get("role")

    return User(
        id=str(user_id),
        email=email.lower() if email else None,
        display_name=user_metadata.get("full_name") or email,
        roles=("authenticated", role) if role and role != "authenticated" else ("authenticated",),
        claims=claims,
    )


def is_allowed_domain(user: User, allowed_domains: tuple[str, ...]) -> bool:
    if not allowed_domains:
        return True
    domain = user.email_domain
    return domain is not None and domain.lower() in allowed_domains


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """Return the authenticated user, or None for anonymous requests."""
    if credentials is None:
        return None
    if credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type, must be Bearer")

    token = credentials.credentials.strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token is required")

    user = build_user_from_claims(decode_access_token(token, secret=settings.supabase_jwt_secret))
    if not is_allowed_domain(user, settings.allowed_domains):
        logger.warning("Rejected %s: email domain not allowed", user.email)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Your email domain is not authorized.",
        )
    return user


async def require_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
