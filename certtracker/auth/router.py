"""Auth router — register, login, logout, current user."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.auth.dependencies import get_current_user
from certtracker.auth.models import User
from certtracker.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, UserInfo
from certtracker.auth.service import authenticate, create_session, register_user, revoke_session
from certtracker.common.rate_limit import LOGIN_LIMIT, limiter
from certtracker.database import get_db

router = APIRouter(prefix="", tags=["auth"])


# ── POST /register ──────────────────────────────────────────────────

@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    user = await register_user(db, body)
    token, expires_in = await create_session(db, user, request.headers.get("User-Agent"))
    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        user=UserInfo.model_validate(user),
    )


# ── POST /login ─────────────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(LOGIN_LIMIT)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    user = await authenticate(db, body.username, body.password)
    token, expires_in = await create_session(db, user, request.headers.get("User-Agent"))
    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        user=UserInfo.model_validate(user),
    )


# ── POST /logout ────────────────────────────────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Revoke the session behind the presented token."""
    await revoke_session(db, request.state.token_hash)
    return {"message": "Logged out successfully"}


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=UserInfo)
async def me(user: User = Depends(get_current_user)):
    return UserInfo.model_validate(user)
