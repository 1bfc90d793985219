"""
Feed and relation endpoints:
  GET  /api/feed                      — paginated, filtered profile feed
  GET  /api/feed/trending/interests   — top interest tags
  GET  /api/feed/{user_id}            — one profile by its owner's id
  POST /api/feed/{profile_id}/like    — toggle a like on a profile
  POST /api/feed/{user_id}/follow     — toggle following a user

Likes address the profile by profile id; follows address the user.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from profile_api.config import settings
from profile_api.core import feed, relations
from profile_api.database import get_db
from profile_api.dependencies import get_current_user, get_optional_user
from profile_api.models import User
from profile_api.schemas import (
    FeedResponse,
    FollowToggleResponse,
    LikeToggleResponse,
    ProfileEnvelope,
    TrendingResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _viewer_id(viewer: Optional[User]) -> Optional[str]:
    return viewer.id if viewer is not None else None


@router.get("", response_model=FeedResponse)
async def get_feed(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.feed_default_limit, ge=1, le=settings.feed_max_limit),
    search: Optional[str] = Query(None, max_length=settings.search_max_length),
    interests: Optional[str] = Query(None, description="Comma-separated interest tags"),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    result = await feed.get_feed(
        db,
        _viewer_id(viewer),
        page=page,
        limit=limit,
        search=search,
        interests=feed.parse_interest_filter(interests),
    )
    return FeedResponse(profiles=result.profiles, pagination=result.pagination)


# Declared before /{user_id} so "trending" is not taken for an id
@router.get("/trending/interests", response_model=TrendingResponse)
async def get_trending_interests(db: AsyncSession = Depends(get_db)):
    return TrendingResponse(trending=await feed.trending_interests(db))


@router.get("/{user_id}", response_model=ProfileEnvelope)
async def get_profile(
    user_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await feed.get_profile(db, _viewer_id(viewer), user_id)
    return ProfileEnvelope(profile=profile)


@router.post("/{profile_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    profile_id: str,
    viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await relations.toggle_like(db, viewer.id, profile_id)
    return LikeToggleResponse(
        message="Profile liked successfully" if result.liked else "Profile unliked successfully",
        liked=result.liked,
        likes_count=result.likes_count,
    )


@router.post("/{user_id}/follow", response_model=FollowToggleResponse)
async def toggle_follow(
    user_id: str,
    viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await relations.toggle_follow(db, viewer.id, user_id)
    return FollowToggleResponse(
        message="User followed successfully" if result.following else "User unfollowed successfully",
        following=result.following,
        followers_count=result.followers_count,
        following_count=result.following_count,
    )
