"""
Graph query engine — attaches counts and viewer-relative flags to profiles.

A page of N profiles costs a fixed number of queries regardless of N:

  • likes per profile        — one GROUP BY over likes
  • followers per owner      — one GROUP BY over follows
  • following per owner      — one GROUP BY over follows
  • viewer's likes / follows — one IN-list lookup each, only with a viewer

The viewer pass runs after the unconditional count pass, so an anonymous
read is exactly the authenticated read minus the last two lookups. All
queries run on the caller's session, i.e. inside one transaction, so the
fields of a response come from a single snapshot of the store.
Nothing here writes.
"""
import logging
from typing import Iterable, Optional

from opentelemetry import trace
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from profile_api.models import Follow, Like, Profile
from profile_api.schemas import AnnotatedProfile, ProfileResponse

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def _grouped_counts(session: AsyncSession, column, ids: list[str]) -> dict[str, int]:  # noqa: ANN001
    if not ids:
        return {}
    rows = await session.execute(
        select(column, func.count()).where(column.in_(ids)).group_by(column)
    )
    return {key: count for key, count in rows.all()}


async def like_counts(session: AsyncSession, profile_ids: list[str]) -> dict[str, int]:
    return await _grouped_counts(session, Like.profile_id, profile_ids)


async def follower_counts(session: AsyncSession, user_ids: list[str]) -> dict[str, int]:
    return await _grouped_counts(session, Follow.following_id, user_ids)


async def following_counts(session: AsyncSession, user_ids: list[str]) -> dict[str, int]:
    return await _grouped_counts(session, Follow.follower_id, user_ids)


async def liked_by_viewer(session: AsyncSession, viewer_id: str, profile_ids: list[str]) -> set[str]:
    """Subset of profile_ids the viewer has a like edge to."""
    if not profile_ids:
        return set()
    rows = await session.execute(
        select(Like.profile_id).where(
            Like.user_id == viewer_id, Like.profile_id.in_(profile_ids)
        )
    )
    return set(rows.scalars().all())


async def followed_by_viewer(session: AsyncSession, viewer_id: str, user_ids: list[str]) -> set[str]:
    """Subset of user_ids the viewer follows."""
    if not user_ids:
        return set()
    rows = await session.execute(
        select(Follow.following_id).where(
            Follow.follower_id == viewer_id, Follow.following_id.in_(user_ids)
        )
    )
    return set(rows.scalars().all())


async def annotate(
    session: AsyncSession,
    viewer_id: Optional[str],
    profiles: Iterable[Profile],
) -> list[AnnotatedProfile]:
    """Return the profiles, in order, with derived fields attached."""
    profiles = list(profiles)
    with tracer.start_as_current_span("annotate_profiles") as span:
        span.set_attribute("annotate.size", len(profiles))
        span.set_attribute("annotate.anonymous", viewer_id is None)

        profile_ids = [p.id for p in profiles]
        owner_ids = list({p.user_id for p in profiles})

        likes = await like_counts(session, profile_ids)
        followers = await follower_counts(session, owner_ids)
        following = await following_counts(session, owner_ids)

        liked: set[str] = set()
        followed: set[str] = set()
        if viewer_id is not None:
            liked = await liked_by_viewer(session, viewer_id, profile_ids)
            followed = await followed_by_viewer(
                session, viewer_id, [uid for uid in owner_ids if uid != viewer_id]
            )

        annotated = []
        for profile in profiles:
            base = ProfileResponse.model_validate(profile)
            annotated.append(
                AnnotatedProfile(
                    **base.model_dump(),
                    likes_count=likes.get(profile.id, 0),
                    followers_count=followers.get(profile.user_id, 0),
                    following_count=following.get(profile.user_id, 0),
                    is_liked=profile.id in liked,
                    is_following=profile.user_id in followed,
                )
            )
        return annotated


async def annotate_one(
    session: AsyncSession, viewer_id: Optional[str], profile: Profile
) -> AnnotatedProfile:
    (annotated,) = await annotate(session, viewer_id, [profile])
    return annotated
