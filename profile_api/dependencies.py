"""
FastAPI dependencies resolving the viewer of a request.

get_current_user   — a valid bearer token for an existing user is required
get_optional_user  — anonymous when the header is absent or the token bad
"""
import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from profile_api.clients.media_client import MediaStore
from profile_api.core import directory
from profile_api.database import get_db
from profile_api.models import User
from profile_api.security import decode_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None:
        raise _unauthorized("Access token required")
    try:
        user_id = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token")

    user = await directory.get_user(db, user_id)
    if user is None:
        raise _unauthorized("User not found")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    if credentials is None:
        return None
    try:
        user_id = decode_token(credentials.credentials)
    except jwt.InvalidTokenError as exc:
        logger.debug("Ignoring bad bearer token on optional route: %s", exc)
        return None
    return await directory.get_user(db, user_id)


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media
