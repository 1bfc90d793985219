"""
Feed assembler — builds the paginated, filtered, annotated profile feed.

  Stage 1 │ Candidate predicate
  ────────┼──────────────────────────────────────────────────────────────
          │  active profiles, minus the viewer's own
          │  AND (name OR bio OR headline contains term)   — optional
          │  AND (interests ∩ filter ≠ ∅)                   — optional

  Stage 2 │ Page + total
  ────────┼──────────────────────────────────────────────────────────────
          │  ORDER BY created_at DESC, id DESC, OFFSET/LIMIT
          │  COUNT(*) over the same predicate

  Stage 3 │ Annotation
  ────────┼──────────────────────────────────────────────────────────────
          │  graph.annotate() over the whole page in batched queries

Also serves single-profile lookups and the trending-interests aggregate.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from opentelemetry import trace
from sqlalchemy import Select, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from profile_api.config import settings
from profile_api.core import graph
from profile_api.errors import NotFoundError, ValidationError
from profile_api.models import Profile, ProfileInterest, User
from profile_api.schemas import AnnotatedProfile, Pagination, TrendingInterest
from profile_api.telemetry import FEED_LATENCY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class FeedPage:
    profiles: list[AnnotatedProfile]
    pagination: Pagination


def parse_interest_filter(raw: Optional[str]) -> list[str]:
    """Split a comma-separated filter, dropping blanks."""
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def _escape_like(term: str) -> str:
    return term.replace("/", "//").replace("%", "/%").replace("_", "/_")


def _check_bounds(page: int, limit: int, search: Optional[str]) -> None:
    if page < 1:
        raise ValidationError('"page" must be greater than or equal to 1')
    if limit < 1 or limit > settings.feed_max_limit:
        raise ValidationError(
            f'"limit" must be between 1 and {settings.feed_max_limit}'
        )
    if search is not None and len(search) > settings.search_max_length:
        raise ValidationError(
            f'"search" must be at most {settings.search_max_length} characters'
        )


def candidate_filter(
    viewer_id: Optional[str],
    search: Optional[str] = None,
    interests: Sequence[str] = (),
) -> list:
    """WHERE clauses shared by the page query and its total count."""
    clauses = [
        Profile.is_active.is_(True),
        exists().where(User.id == Profile.user_id),
    ]
    if viewer_id is not None:
        clauses.append(Profile.user_id != viewer_id)

    term = (search or "").strip()
    if term:
        pattern = f"%{_escape_like(term.lower())}%"
        clauses.append(
            or_(
                func.lower(Profile.name).like(pattern, escape="/"),
                func.lower(Profile.bio).like(pattern, escape="/"),
                func.lower(Profile.headline).like(pattern, escape="/"),
            )
        )

    if interests:
        clauses.append(
            exists().where(
                ProfileInterest.profile_id == Profile.id,
                ProfileInterest.interest.in_(list(interests)),
            )
        )
    return clauses


def _page_query(clauses: list, page: int, limit: int) -> Select:
    return (
        select(Profile)
        .where(*clauses)
        .order_by(Profile.created_at.desc(), Profile.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )


def paginate(page: int, limit: int, total_count: int) -> Pagination:
    total_pages = math.ceil(total_count / limit)
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_count=total_count,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


async def get_feed(
    session: AsyncSession,
    viewer_id: Optional[str],
    page: int = 1,
    limit: Optional[int] = None,
    search: Optional[str] = None,
    interests: Sequence[str] = (),
) -> FeedPage:
    """One page of active profiles, newest first, annotated for the viewer."""
    limit = settings.feed_default_limit if limit is None else limit
    _check_bounds(page, limit, search)
    start_time = time.time()

    with tracer.start_as_current_span("get_feed") as span:
        span.set_attribute("feed.page", page)
        span.set_attribute("feed.limit", limit)
        span.set_attribute("feed.search", bool(search and search.strip()))
        span.set_attribute("feed.interests", len(interests))
        if viewer_id:
            span.set_attribute("user.id", viewer_id)

        clauses = candidate_filter(viewer_id, search, interests)

        rows = await session.execute(_page_query(clauses, page, limit))
        profiles = rows.scalars().all()

        total_count = await session.scalar(
            select(func.count()).select_from(Profile).where(*clauses)
        )

        annotated = await graph.annotate(session, viewer_id, profiles)
        pagination = paginate(page, limit, total_count or 0)

        latency = time.time() - start_time
        FEED_LATENCY.observe(latency)
        span.set_attribute("feed.profiles_returned", len(annotated))
        span.set_attribute("feed.total_count", pagination.total_count)

        return FeedPage(profiles=annotated, pagination=pagination)


async def get_profile(
    session: AsyncSession, viewer_id: Optional[str], target_user_id: str
) -> AnnotatedProfile:
    """A single visible profile by owning user id, annotated for the viewer."""
    rows = await session.execute(
        select(Profile).where(
            Profile.user_id == target_user_id,
            Profile.is_active.is_(True),
        )
    )
    profile = rows.scalar_one_or_none()
    if profile is None:
        raise NotFoundError("Profile not found")
    return await graph.annotate_one(session, viewer_id, profile)


async def trending_interests(
    session: AsyncSession, limit: Optional[int] = None
) -> list[TrendingInterest]:
    """
    Most common interest tags across active profiles.

    Count descending, tag ascending on ties. Scans every active profile's
    tags on each call; there is no recency window or cached rollup.
    """
    limit = settings.trending_limit if limit is None else limit
    count = func.count().label("tag_count")
    rows = await session.execute(
        select(ProfileInterest.interest, count)
        .join(Profile, Profile.id == ProfileInterest.profile_id)
        .where(Profile.is_active.is_(True))
        .group_by(ProfileInterest.interest)
        .order_by(count.desc(), ProfileInterest.interest.asc())
        .limit(limit)
    )
    return [TrendingInterest(interest=interest, count=n) for interest, n in rows.all()]
