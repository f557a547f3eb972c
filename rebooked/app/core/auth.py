"""
Access token authentication.

Users authenticate with ``Authorization: Bearer <jwt>`` issued by the auth
provider (HS256, ``sub`` = profile id). Internal callers (admin tooling,
delivery webhooks, scheduled jobs) use the ``X-Internal-Key`` service key.
"""
import hmac
import time
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.api.deps import get_session
from rebooked.app.core.constants import ADMIN_ROLES
from rebooked.app.core.logging import get_logger
from rebooked.app.core.settings import get_settings

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
JWT_EXPIRY_SECONDS = 60 * 60


class AuthUser(BaseModel):
    """Authenticated caller, resolved from the token and the profiles table."""
    id: str
    email: Optional[str] = None
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def create_access_token(user_id: str, email: Optional[str] = None, expires_in: int = JWT_EXPIRY_SECONDS) -> str:
    """Issue a token the way the auth provider does (used by tooling and tests)."""
    settings = get_settings()
    if not settings.JWT_SECRET:
        raise RuntimeError("JWT_SECRET is not configured")
    now = int(time.time())
    payload = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + expires_in,
    }
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Validate signature, expiry and audience of an access token.

    Raises:
        HTTPException 401: If the token is invalid or expired
        HTTPException 500: If JWT_SECRET is not configured
    """
    settings = get_settings()
    if not settings.JWT_SECRET:
        raise HTTPException(status_code=500, detail="Server configuration error: JWT_SECRET not set")
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options={"verify_aud": bool(settings.JWT_AUDIENCE)},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid authentication")
    if not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid authentication")
    return claims


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def _resolve_user(session: AsyncSession, claims: dict) -> AuthUser:
    from rebooked.app.models.user import Profile

    profile = await session.get(Profile, claims["sub"])
    if profile is None:
        # Token is valid but the profile row has not been created yet
        return AuthUser(id=claims["sub"], email=claims.get("email"))
    return AuthUser(id=profile.id, email=profile.email or claims.get("email"), role=profile.role or "user")


async def get_current_user(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
) -> AuthUser:
    """
    FastAPI dependency to get the authenticated user.

        @router.get("/protected")
        async def protected(user: AuthUser = Depends(get_current_user)):
            ...

    Raises:
        HTTPException 401: If authentication fails
    """
    token = _extract_bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    claims = decode_access_token(token)
    return await _resolve_user(session, claims)


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
) -> Optional[AuthUser]:
    """Like get_current_user, but returns None instead of failing."""
    token = _extract_bearer(authorization)
    if not token:
        return None
    try:
        claims = decode_access_token(token)
    except HTTPException as e:
        logger.info("Optional auth failed, continuing anonymously", detail=e.detail)
        return None
    return await _resolve_user(session, claims)


async def require_internal_api_key(
    x_internal_key: Optional[str] = Header(None, alias="X-Internal-Key"),
) -> None:
    """Require the service key for internal (admin / system) endpoints."""
    settings = get_settings()
    if not settings.INTERNAL_API_KEY:
        if settings.is_production:
            raise HTTPException(status_code=500, detail="Server configuration error: INTERNAL_API_KEY not set")
        logger.warning("INTERNAL_API_KEY not set, internal endpoints are unprotected")
        return
    if not x_internal_key or not hmac.compare_digest(x_internal_key, settings.INTERNAL_API_KEY):
        raise HTTPException(status_code=401, detail="Invalid or missing internal API key")
