"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

Field bounds mirror the profile attribute limits; the core re-checks
them so direct callers get the same guarantees.
"""
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints
from pydantic.alias_generators import to_camel

NAME_MIN = 2
NAME_MAX = 50
BIO_MAX = 500
HEADLINE_MAX = 100
INTERESTS_MAX = 10
INTEREST_MAX = 30
PASSWORD_MIN = 6

Interest = Annotated[str, StringConstraints(max_length=INTEREST_MAX)]


class CamelModel(BaseModel):
    """Serialises snake_case attributes as camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ──────────────────────────── Auth ────────────────────────────────────────

class SignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN)
    name: str = Field(..., min_length=NAME_MIN, max_length=NAME_MAX)
    bio: Optional[str] = Field(None, max_length=BIO_MAX)
    headline: Optional[str] = Field(None, max_length=HEADLINE_MAX)
    interests: Optional[list[Interest]] = Field(None, max_length=INTERESTS_MAX)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class RefreshRequest(CamelModel):
    refresh_token: str


# ──────────────────────────── Profiles ────────────────────────────────────

class ProfileUpdate(CamelModel):
    """Partial update — omitted fields are left untouched."""
    name: Optional[str] = Field(None, min_length=NAME_MIN, max_length=NAME_MAX)
    bio: Optional[str] = Field(None, max_length=BIO_MAX)
    headline: Optional[str] = Field(None, max_length=HEADLINE_MAX)
    interests: Optional[list[Interest]] = Field(None, max_length=INTERESTS_MAX)


class PhotoUpdate(CamelModel):
    photo_url: str = Field(..., min_length=1)
    photo_key: Optional[str] = None


class ProfileResponse(CamelModel):
    """A profile as stored, without derived fields."""
    id: str
    user_id: str
    name: str
    bio: str
    headline: str
    interests: list[str]
    photo_url: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AnnotatedProfile(ProfileResponse):
    """A profile with counts and viewer-relative flags attached."""
    likes_count: int = 0
    followers_count: int = 0
    following_count: int = 0
    is_liked: bool = False
    is_following: bool = False


class UserResponse(CamelModel):
    id: str
    email: str
    created_at: datetime
    profile: Optional[ProfileResponse] = None


class MeResponse(UserResponse):
    followers_count: int
    following_count: int


class AuthResponse(CamelModel):
    message: str
    user: UserResponse
    access_token: str
    refresh_token: str


# ──────────────────────────── Feed ────────────────────────────────────────

class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool


class FeedResponse(CamelModel):
    profiles: list[AnnotatedProfile]
    pagination: Pagination


class ProfileEnvelope(CamelModel):
    profile: AnnotatedProfile


class TrendingInterest(CamelModel):
    interest: str
    count: int


class TrendingResponse(CamelModel):
    trending: list[TrendingInterest]


# ──────────────────────────── Relations ───────────────────────────────────

class LikeToggleResponse(CamelModel):
    message: str
    liked: bool
    likes_count: int


class FollowToggleResponse(CamelModel):
    message: str
    following: bool
    followers_count: int
    following_count: int


class Connection(CamelModel):
    """One entry of a followers / following list."""
    id: str
    email: str
    profile: Optional[ProfileResponse]
    followers_count: int
    following_count: int
    followed_at: datetime


class FollowingList(CamelModel):
    following: list[Connection]
    count: int


class FollowersList(CamelModel):
    followers: list[Connection]
    count: int


# ──────────────────────────── Uploads ─────────────────────────────────────

class UploadResponse(CamelModel):
    message: str
    url: str
    key: str


class PresignRequest(CamelModel):
    file_name: str = Field(..., min_length=1)
    file_type: str = Field(..., min_length=1)


class PresignResponse(CamelModel):
    message: str
    upload_url: str
    key: str
    public_url: str


class MessageResponse(CamelModel):
    message: str
