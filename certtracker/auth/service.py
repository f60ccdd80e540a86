"""Auth service — password hashing, JWT issuance, session lifecycle."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import jwt
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.auth.models import User, UserSession
from certtracker.auth.schemas import RegisterRequest
from certtracker.common.constants import UserRole
from certtracker.common.exceptions import ConflictError, UnauthorizedException
from certtracker.config import settings

logger = logging.getLogger(__name__)


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    hashed = bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        return False


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(user_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


# ── Users ───────────────────────────────────────────────────────────

async def register_user(db: AsyncSession, body: RegisterRequest) -> User:
    """Create a regular user. Username and e-mail must both be unused."""
    result = await db.execute(
        select(User).where(or_(User.username == body.username, User.email == body.email)),
    )
    existing = result.scalars().first()
    if existing is not None:
        field, value = (
            ("username", body.username)
            if existing.username == body.username
            else ("email", body.email)
        )
        raise ConflictError(field, value)

    user = User(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        role=UserRole.user,
    )
    db.add(user)
    await db.flush()
    logger.info("Registered user %s", user.username)
    return user


async def authenticate(db: AsyncSession, username: str, password: str) -> User:
    result = await db.execute(
        select(User).where(User.username == username, User.is_active.is_(True)),
    )
    user = result.scalars().first()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %r", username)
        raise UnauthorizedException("Invalid credentials.")
    return user


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    user: User,
    user_agent: Optional[str] = None,
) -> tuple[str, int]:
    """Issue an access token and persist its session. Returns (token, expires_in)."""
    token, expires_in = create_access_token(user.id, user.role)
    db.add(
        UserSession(
            user_id=user.id,
            token_hash=hash_token(token),
            user_agent=user_agent,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )
    )
    await db.flush()
    return token, expires_in


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()
