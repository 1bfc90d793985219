"""
Profile directory — owns profile attributes and the user/profile lifecycle.

A user and its profile are created together and deleted together, each in
one transaction, so no reader ever sees one without the other. Deleting an
account removes every like and follow edge that touches it in the same
transaction.
"""
import logging
from typing import Optional, Sequence

from opentelemetry import trace
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_api.clients.media_client import is_owned_key
from profile_api.errors import ConflictError, NotFoundError, ValidationError
from profile_api.models import Follow, Like, Profile, ProfileInterest, User
from profile_api.schemas import (
    BIO_MAX,
    HEADLINE_MAX,
    INTEREST_MAX,
    INTERESTS_MAX,
    NAME_MAX,
    NAME_MIN,
)
from profile_api.telemetry import SIGNUPS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_UNSET = object()


# ─────────────────────────── Attribute bounds ─────────────────────────────

def clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not NAME_MIN <= len(name) <= NAME_MAX:
        raise ValidationError(
            f'"name" length must be between {NAME_MIN} and {NAME_MAX} characters'
        )
    return name


def clean_text(field: str, value: Optional[str], max_length: int) -> str:
    value = value or ""
    if len(value) > max_length:
        raise ValidationError(
            f'"{field}" length must be less than or equal to {max_length} characters'
        )
    return value


def clean_interests(interests: Optional[Sequence[str]]) -> list[str]:
    """Trim tags, drop blanks and repeats, keep first-seen order."""
    tags: list[str] = []
    for raw in interests or []:
        tag = raw.strip()
        if not tag or tag in tags:
            continue
        if len(tag) > INTEREST_MAX:
            raise ValidationError(
                f'each interest must be at most {INTEREST_MAX} characters'
            )
        tags.append(tag)
    if len(tags) > INTERESTS_MAX:
        raise ValidationError(f'"interests" must contain at most {INTERESTS_MAX} items')
    return tags


# ─────────────────────────── Reads ────────────────────────────────────────

async def get_user(session: AsyncSession, user_id: str) -> Optional[User]:
    return await session.get(User, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    rows = await session.execute(select(User).where(User.email == email.lower()))
    return rows.scalar_one_or_none()


async def find_profile(session: AsyncSession, user_id: str) -> Optional[Profile]:
    rows = await session.execute(select(Profile).where(Profile.user_id == user_id))
    return rows.scalar_one_or_none()


async def get_own_profile(session: AsyncSession, user_id: str) -> Profile:
    profile = await find_profile(session, user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


async def users_by_ids(session: AsyncSession, user_ids: Sequence[str]) -> dict[str, User]:
    if not user_ids:
        return {}
    rows = await session.execute(select(User).where(User.id.in_(list(user_ids))))
    return {u.id: u for u in rows.scalars().all()}


async def profiles_for_users(session: AsyncSession, user_ids: Sequence[str]) -> dict[str, Profile]:
    if not user_ids:
        return {}
    rows = await session.execute(select(Profile).where(Profile.user_id.in_(list(user_ids))))
    return {p.user_id: p for p in rows.scalars().all()}


# ─────────────────────────── Writes ───────────────────────────────────────

async def create_account(
    session: AsyncSession,
    email: str,
    password_hash: str,
    name: str,
    bio: Optional[str] = None,
    headline: Optional[str] = None,
    interests: Optional[Sequence[str]] = None,
) -> tuple[User, Profile]:
    """Create a user and its profile atomically."""
    with tracer.start_as_current_span("create_account"):
        email = email.strip().lower()
        profile = Profile(
            name=clean_name(name),
            bio=clean_text("bio", bio, BIO_MAX),
            headline=clean_text("headline", headline, HEADLINE_MAX),
        )
        profile.set_interests(clean_interests(interests))

        if await get_user_by_email(session, email) is not None:
            raise ConflictError("User with this email already exists")

        user = User(email=email, password_hash=password_hash)
        session.add(user)
        try:
            await session.flush()  # materialise user.id
            profile.user_id = user.id
            session.add(profile)
            await session.commit()
        except IntegrityError:
            # Lost a race against a concurrent signup with the same email
            await session.rollback()
            raise ConflictError("User with this email already exists")

        SIGNUPS_TOTAL.inc()
        logger.info("Created user %s (id=%s)", email, user.id)
        return user, profile


async def update_profile(
    session: AsyncSession,
    user_id: str,
    name=_UNSET,
    bio=_UNSET,
    headline=_UNSET,
    interests=_UNSET,
) -> Profile:
    """Partial update; only the attributes passed are changed."""
    profile = await get_own_profile(session, user_id)

    if name is not _UNSET:
        profile.name = clean_name(name)
    if bio is not _UNSET:
        profile.bio = clean_text("bio", bio, BIO_MAX)
    if headline is not _UNSET:
        profile.headline = clean_text("headline", headline, HEADLINE_MAX)
    if interests is not _UNSET:
        tags = clean_interests(interests)
        # Old rows must be gone before new positions are inserted
        profile.interest_rows.clear()
        await session.flush()
        profile.set_interests(tags)

    await session.commit()
    await session.refresh(profile)
    logger.info("Updated profile %s", profile.id)
    return profile


async def update_photo(
    session: AsyncSession, user_id: str, photo_url: str, photo_key: Optional[str] = None
) -> tuple[Profile, Optional[str]]:
    """
    Point the profile at a new photo. Returns the profile and the replaced key.

    A photo key is only stored when it lies under the user's own media
    prefix, so a replaced or deleted photo can never remove another
    user's object.
    """
    if not photo_url or not photo_url.strip():
        raise ValidationError("Photo URL is required")
    if photo_key is not None and not is_owned_key(photo_key, user_id):
        raise ValidationError("Photo key does not belong to this user")
    profile = await get_own_profile(session, user_id)
    previous_key = profile.photo_key if profile.photo_key != photo_key else None
    profile.photo_url = photo_url.strip()
    profile.photo_key = photo_key
    await session.commit()
    await session.refresh(profile)
    return profile, previous_key


async def delete_account(session: AsyncSession, user_id: str) -> Optional[str]:
    """
    Hard-delete the user, its profile and every edge touching either.

    Returns the profile's photo key so the caller can clean up media.
    """
    with tracer.start_as_current_span("delete_account"):
        profile = await get_own_profile(session, user_id)
        profile_id, photo_key = profile.id, profile.photo_key

        await session.execute(
            delete(Like).where(or_(Like.user_id == user_id, Like.profile_id == profile_id))
        )
        await session.execute(
            delete(Follow).where(
                or_(Follow.follower_id == user_id, Follow.following_id == user_id)
            )
        )
        await session.execute(delete(ProfileInterest).where(ProfileInterest.profile_id == profile_id))
        await session.execute(delete(Profile).where(Profile.id == profile_id))
        await session.execute(delete(User).where(User.id == user_id))
        await session.commit()

        logger.info("Deleted account %s (profile=%s)", user_id, profile_id)
        return photo_key
