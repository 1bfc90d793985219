"""
Password hashing and signed bearer tokens.

Access tokens are short-lived (settings.access_token_expire_minutes);
refresh tokens live longer and are signed with a separate secret so one
can never be replayed as the other.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext

from profile_api.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _secret(kind: str) -> str:
    return settings.jwt_refresh_secret if kind == REFRESH else settings.jwt_secret


def create_token(user_id: str, kind: str = ACCESS, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = (
            timedelta(days=settings.refresh_token_expire_days)
            if kind == REFRESH
            else timedelta(minutes=settings.access_token_expire_minutes)
        )
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "type": kind, "iat": now, "exp": now + expires_delta}
    return jwt.encode(payload, _secret(kind), algorithm=settings.jwt_algorithm)


def create_tokens(user_id: str) -> tuple[str, str]:
    """(access_token, refresh_token) for a user."""
    return create_token(user_id, ACCESS), create_token(user_id, REFRESH)


def decode_token(token: str, kind: str = ACCESS) -> str:
    """
    Verify a token and return its user id.

    Raises jwt.ExpiredSignatureError for an expired token and
    jwt.InvalidTokenError for anything else that fails verification.
    """
    payload = jwt.decode(token, _secret(kind), algorithms=[settings.jwt_algorithm])
    if payload.get("type") != kind or not payload.get("sub"):
        raise jwt.InvalidTokenError("Wrong token type")
    return payload["sub"]
