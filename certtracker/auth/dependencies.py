"""Auth dependencies — JWT validation, role enforcement, cron secret."""

from __future__ import annotations

import hmac
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, Header, Query, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.auth.models import User, UserSession
from certtracker.auth.service import hash_token
from certtracker.common.constants import UserRole
from certtracker.common.exceptions import ForbiddenException, UnauthorizedException
from certtracker.config import settings
from certtracker.database import get_db

logger = logging.getLogger(__name__)


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedException("Missing or invalid Authorization header.")
    return auth_header[7:]


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate JWT, verify session, return the authenticated User."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedException("Token has expired.")
    except JWTError:
        raise UnauthorizedException("Invalid token.")

    if payload.get("type") != "access":
        raise UnauthorizedException("Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == hash_token(token),
            UserSession.is_revoked.is_(False),
        ),
    )
    session = result.scalars().first()
    if session is None or _as_utc(session.expires_at) <= datetime.now(timezone.utc):
        raise UnauthorizedException("Session invalid or expired.")

    user_result = await db.execute(
        select(User).where(User.id == uuid.UUID(payload["sub"]), User.is_active.is_(True)),
    )
    user = user_result.scalars().first()
    if user is None:
        raise UnauthorizedException("User account is inactive or not found.")

    request.state.user_role = user.role
    request.state.token_hash = session.token_hash
    return user


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed_roles:
            raise ForbiddenException(
                detail=f"Role '{user.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return user

    return _check


require_admin = require_role(UserRole.admin)


# ── Shared-secret check for the scheduled trigger ───────────────────

async def verify_cron_secret(
    secret: Optional[str] = Query(default=None, description="Cron shared secret"),
    x_cron_secret: Optional[str] = Header(default=None),
) -> None:
    """Reject the call unless it carries CRON_SECRET (when one is configured)."""
    if not settings.CRON_SECRET:
        return
    supplied = secret or x_cron_secret or ""
    if not hmac.compare_digest(supplied.encode(), settings.CRON_SECRET.encode()):
        logger.warning("Unauthorized cron attempt")
        raise UnauthorizedException("Invalid cron secret.")
