"""
Own-profile endpoints (all require a bearer token):
  GET    /api/profiles/me         — own profile with counts
  PUT    /api/profiles/me         — partial update
  DELETE /api/profiles/me         — delete profile and account
  PUT    /api/profiles/me/photo   — set the photo URL
  GET    /api/profiles/following  — users I follow
  GET    /api/profiles/followers  — users following me
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from profile_api.clients.media_client import MediaStore
from profile_api.core import directory, graph, relations
from profile_api.database import get_db
from profile_api.dependencies import get_current_user, get_media_store
from profile_api.models import Follow, User
from profile_api.schemas import (
    Connection,
    FollowersList,
    FollowingList,
    MessageResponse,
    PhotoUpdate,
    ProfileEnvelope,
    ProfileResponse,
    ProfileUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _connections(db: AsyncSession, edges: list[Follow], user_ids: list[str]) -> list[Connection]:
    """Hydrate follow edges with the other side's user, profile and counts."""
    users = await directory.users_by_ids(db, user_ids)
    profiles = await directory.profiles_for_users(db, user_ids)
    followers = await graph.follower_counts(db, user_ids)
    following = await graph.following_counts(db, user_ids)

    connections = []
    for edge, uid in zip(edges, user_ids):
        user = users.get(uid)
        if user is None:
            continue
        profile = profiles.get(uid)
        connections.append(
            Connection(
                id=uid,
                email=user.email,
                profile=ProfileResponse.model_validate(profile) if profile else None,
                followers_count=followers.get(uid, 0),
                following_count=following.get(uid, 0),
                followed_at=edge.created_at,
            )
        )
    return connections


@router.get("/me", response_model=ProfileEnvelope)
async def get_my_profile(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    profile = await directory.get_own_profile(db, user.id)
    return ProfileEnvelope(profile=await graph.annotate_one(db, user.id, profile))


@router.put("/me", response_model=ProfileEnvelope)
async def update_my_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = user.id
    profile = await directory.update_profile(db, user_id, **body.model_dump(exclude_unset=True))
    return ProfileEnvelope(profile=await graph.annotate_one(db, user_id, profile))


@router.put("/me/photo", response_model=ProfileEnvelope)
async def update_my_photo(
    body: PhotoUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
):
    user_id = user.id
    profile, replaced_key = await directory.update_photo(db, user_id, body.photo_url, body.photo_key)
    if replaced_key:
        media.delete(replaced_key)
    return ProfileEnvelope(profile=await graph.annotate_one(db, user_id, profile))


@router.delete("/me", response_model=MessageResponse)
async def delete_my_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
):
    photo_key = await directory.delete_account(db, user.id)
    if photo_key:
        media.delete(photo_key)
    return MessageResponse(message="Profile and account deleted successfully")


@router.get("/following", response_model=FollowingList)
async def get_following(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    edges = await relations.list_following(db, user.id)
    connections = await _connections(db, edges, [e.following_id for e in edges])
    return FollowingList(following=connections, count=len(connections))


@router.get("/followers", response_model=FollowersList)
async def get_followers(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    edges = await relations.list_followers(db, user.id)
    connections = await _connections(db, edges, [e.follower_id for e in edges])
    return FollowersList(followers=connections, count=len(connections))
