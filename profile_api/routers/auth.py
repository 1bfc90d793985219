"""
Account endpoints:
  POST /api/auth/signup  — create a user + profile, return tokens
  POST /api/auth/login   — exchange credentials for tokens
  POST /api/auth/refresh — exchange a refresh token for new tokens
  GET  /api/auth/me      — the caller with follow counts
"""
import logging

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from profile_api.core import directory, relations
from profile_api.database import get_db
from profile_api.dependencies import get_current_user
from profile_api.models import User
from profile_api.schemas import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    ProfileResponse,
    RefreshRequest,
    SignupRequest,
    UserResponse,
)
from profile_api.security import REFRESH, create_tokens, decode_token, get_password_hash, verify_password

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _user_response(user: User, profile) -> UserResponse:  # noqa: ANN001
    return UserResponse(
        id=user.id,
        email=user.email,
        created_at=user.created_at,
        profile=ProfileResponse.model_validate(profile) if profile else None,
    )


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    """Register a new user; the user and profile are created in one transaction."""
    with tracer.start_as_current_span("signup"):
        user, profile = await directory.create_account(
            db,
            email=body.email,
            password_hash=get_password_hash(body.password),
            name=body.name,
            bio=body.bio,
            headline=body.headline,
            interests=body.interests,
        )
        access_token, refresh_token = create_tokens(user.id)
        return AuthResponse(
            message="User created successfully",
            user=_user_response(user, profile),
            access_token=access_token,
            refresh_token=refresh_token,
        )


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await directory.get_user_by_email(db, body.email)
    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    profile = await directory.find_profile(db, user.id)
    access_token, refresh_token = create_tokens(user.id)
    logger.info("User %s logged in", user.id)
    return AuthResponse(
        message="Login successful",
        user=_user_response(user, profile),
        access_token=access_token,
        refresh_token=refresh_token,
    )


@router.post("/refresh", response_model=AuthResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    try:
        user_id = decode_token(body.refresh_token, REFRESH)
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    user = await directory.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    profile = await directory.find_profile(db, user.id)
    access_token, refresh_token = create_tokens(user.id)
    return AuthResponse(
        message="Token refreshed successfully",
        user=_user_response(user, profile),
        access_token=access_token,
        refresh_token=refresh_token,
    )


@router.get("/me", response_model=MeResponse)
async def me(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    profile = await directory.find_profile(db, user.id)
    base = _user_response(user, profile)
    return MeResponse(
        **base.model_dump(),
        followers_count=await relations.count_followers(db, user.id),
        following_count=await relations.count_following(db, user.id),
    )
