"""SQLAlchemy ORM models backing the persistent state."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class Genre(Base):
    """Genre reference data."""

    __tablename__ = "genres"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))


class Language(Base):
    """Spoken-language reference data."""

    __tablename__ = "languages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))


class OttPlatformRecord(Base):
    """Streaming platform reference data."""

    __tablename__ = "ott_platforms"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    icon_url: Mapped[str | None] = mapped_column(String(512), nullable=True)


class Content(Base):
    """Catalog row for a movie or TV show."""

    __tablename__ = "movies_tv_shows"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    release_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    type: Mapped[str] = mapped_column(String(16), default="movie")
    genre_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    language_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    poster_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)


class ContentOttPlatform(Base):
    """Association between catalog content and the platforms streaming it."""

    __tablename__ = "movie_ott_platforms"

    movie_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("movies_tv_shows.id", ondelete="CASCADE"),
        primary_key=True,
    )
    ott_platform_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("ott_platforms.id", ondelete="CASCADE"),
        primary_key=True,
    )


class WatchedContent(Base):
    """A title a user has marked as watched."""

    __tablename__ = "user_watched_content"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_watched_user_movie"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    movie_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("movies_tv_shows.id", ondelete="CASCADE")
    )
    watched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Rating(Base):
    """A user's star rating for a title."""

    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_rating_user_movie"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    movie_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("movies_tv_shows.id", ondelete="CASCADE")
    )
    rating_value: Mapped[float] = mapped_column(Float)


class UserProfile(Base):
    """Stated genre and language preferences."""

    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    preferred_genre_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    preferred_language_ids: Mapped[list[str] | None] = mapped_column(
        JSON, nullable=True
    )


class UserRecommendation(Base):
    """Cached recommendation list, one row per user."""

    __tablename__ = "user_recommendations"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    recommendations: Mapped[list[dict[str, Any]]] = mapped_column(JSON)
    watched_count: Mapped[int] = mapped_column(Integer, default=0)
    model: Mapped[str | None] = mapped_column(String(200), nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
