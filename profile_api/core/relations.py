"""
Relation store — the only writer of like and follow edges.

Toggles run as a delete-first sequence inside one transaction:

  1. DELETE the (actor, target) edge.
  2. If a row went away the relation is now off.
  3. Otherwise INSERT the edge. A primary-key violation here means a
     concurrent toggle from the same actor inserted it first, so the
     transaction is rolled back and the outcome collapses to "on".

The DELETE is a single statement, so two racing toggles can never both
observe "no edge" and both succeed in inserting: the composite primary
key admits exactly one of them. Counts returned with a toggle are read
after its commit, so they always include the caller's own write.
"""
import logging
from dataclasses import dataclass
from typing import Union

from opentelemetry import trace
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_api.errors import NotFoundError, SelfReferenceError
from profile_api.models import Follow, Like, Profile, User
from profile_api.telemetry import RELATION_TOGGLE_CONFLICTS, RELATION_TOGGLES

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

Edge = Union[Like, Follow]


@dataclass
class LikeToggle:
    liked: bool
    likes_count: int


@dataclass
class FollowToggle:
    following: bool
    followers_count: int
    following_count: int


async def _toggle_edge(session: AsyncSession, relation: str, existing, edge: Edge) -> bool:
    """
    Flip one edge and commit. Returns True when the edge exists afterwards.

    `existing` is the WHERE clause identifying the edge.
    """
    result = await session.execute(delete(type(edge)).where(*existing))
    if result.rowcount:
        await session.commit()
        RELATION_TOGGLES.labels(relation=relation, outcome="off").inc()
        return False

    session.add(edge)
    try:
        await session.commit()
    except IntegrityError:
        # Another request inserted the same pair first
        await session.rollback()
        RELATION_TOGGLE_CONFLICTS.labels(relation=relation).inc()
        logger.warning("Concurrent %s insert collapsed to existing edge", relation)
    RELATION_TOGGLES.labels(relation=relation, outcome="on").inc()
    return True


# ─────────────────────────── Counts ───────────────────────────────────────

async def count_likes(session: AsyncSession, profile_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(Like).where(Like.profile_id == profile_id)
    )
    return result.scalar_one()


async def count_followers(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
    )
    return result.scalar_one()


async def count_following(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
    )
    return result.scalar_one()


# ─────────────────────────── Toggles ──────────────────────────────────────

async def toggle_like(session: AsyncSession, viewer_id: str, profile_id: str) -> LikeToggle:
    """Like the profile if the viewer hasn't yet, otherwise remove the like."""
    with tracer.start_as_current_span("toggle_like") as span:
        span.set_attribute("user.id", viewer_id)
        span.set_attribute("profile.id", profile_id)

        owner_id = await session.scalar(
            select(Profile.user_id).where(Profile.id == profile_id)
        )
        if owner_id is None:
            raise NotFoundError("Profile not found")
        if owner_id == viewer_id:
            raise SelfReferenceError("Cannot like your own profile")

        liked = await _toggle_edge(
            session,
            "like",
            (Like.user_id == viewer_id, Like.profile_id == profile_id),
            Like(user_id=viewer_id, profile_id=profile_id),
        )
        likes_count = await count_likes(session, profile_id)

        span.set_attribute("like.liked", liked)
        logger.info(
            "%s %s profile %s", viewer_id, "liked" if liked else "unliked", profile_id
        )
        return LikeToggle(liked=liked, likes_count=likes_count)


async def toggle_follow(session: AsyncSession, viewer_id: str, target_user_id: str) -> FollowToggle:
    """Follow the target user if not following yet, otherwise unfollow."""
    with tracer.start_as_current_span("toggle_follow") as span:
        span.set_attribute("user.id", viewer_id)
        span.set_attribute("target.id", target_user_id)

        if viewer_id == target_user_id:
            raise SelfReferenceError("Cannot follow yourself")

        exists = await session.scalar(select(User.id).where(User.id == target_user_id))
        if exists is None:
            raise NotFoundError("User not found")

        following = await _toggle_edge(
            session,
            "follow",
            (Follow.follower_id == viewer_id, Follow.following_id == target_user_id),
            Follow(follower_id=viewer_id, following_id=target_user_id),
        )
        followers_count = await count_followers(session, target_user_id)
        following_count = await count_following(session, target_user_id)

        span.set_attribute("follow.following", following)
        logger.info(
            "%s %s %s",
            viewer_id,
            "followed" if following else "unfollowed",
            target_user_id,
        )
        return FollowToggle(
            following=following,
            followers_count=followers_count,
            following_count=following_count,
        )


# ─────────────────────────── Edge listings ────────────────────────────────

async def list_following(session: AsyncSession, user_id: str) -> list[Follow]:
    """Edges where user_id is the follower, newest first."""
    rows = await session.execute(
        select(Follow)
        .where(Follow.follower_id == user_id)
        .order_by(Follow.created_at.desc(), Follow.following_id)
    )
    return list(rows.scalars().all())


async def list_followers(session: AsyncSession, user_id: str) -> list[Follow]:
    """Edges where user_id is the one being followed, newest first."""
    rows = await session.execute(
        select(Follow)
        .where(Follow.following_id == user_id)
        .order_by(Follow.created_at.desc(), Follow.follower_id)
    )
    return list(rows.scalars().all())
