"""
SQLAlchemy ORM models for TiDB.

Tables:
  users             — account identity (email + bcrypt hash)
  profiles          — one profile per user (1:1 on user_id)
  profile_interests — ordered interest tags of a profile
  likes             — user × profile edges
  follows           — social graph edges (follower → following)

Like and follow counts are never stored; they are counted from the edge
tables on read. The composite primary keys on likes/follows are the
uniqueness backstop for concurrent toggles.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from profile_api.database import Base

# Microsecond precision on MySQL/TiDB so newest-first ordering holds
# for rows created within the same second
Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    profile: Mapped[Optional["Profile"]] = relationship(
        "Profile", back_populates="user", uselist=False, lazy="raise"
    )


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)
    headline: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    photo_url: Mapped[Optional[str]] = mapped_column(String(1024))
    # Media store object key — needed to delete the object later
    photo_key: Mapped[Optional[str]] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, onupdate=utcnow, nullable=False
    )

    user = relationship("User", back_populates="profile", lazy="raise")
    interest_rows: Mapped[list["ProfileInterest"]] = relationship(
        "ProfileInterest",
        order_by="ProfileInterest.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        # Feed ordering: newest first, id as the tie-break
        Index("idx_profiles_feed", "is_active", "created_at", "id"),
    )

    @property
    def interests(self) -> list[str]:
        return [row.interest for row in self.interest_rows]

    def set_interests(self, interests: list[str]) -> None:
        self.interest_rows = [
            ProfileInterest(position=i, interest=tag) for i, tag in enumerate(interests)
        ]


class ProfileInterest(Base):
    __tablename__ = "profile_interests"

    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    interest: Mapped[str] = mapped_column(String(30), nullable=False)

    __table_args__ = (
        UniqueConstraint("profile_id", "interest", name="uq_profile_interest"),
        # Interest-overlap filter and trending aggregation
        Index("idx_interest", "interest"),
    )


class Like(Base):
    __tablename__ = "likes"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    __table_args__ = (
        # likesCount(profile) lookups
        Index("idx_likes_profile", "profile_id"),
    )


class Follow(Base):
    __tablename__ = "follows"

    follower_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    following_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    __table_args__ = (
        # Fast lookup "who follows user X?"
        Index("idx_following", "following_id"),
    )
