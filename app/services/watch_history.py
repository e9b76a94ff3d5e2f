"""Watch history and preference reads for a single user."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import Content, Rating, UserProfile, WatchedContent
from ..models import ContentRecord, HistoryEntry, UserPreference, WatchedItem


class WatchHistoryReader:
    """Reads a user's watched titles, ratings and stated preferences."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def fingerprint(self, user_id: str) -> int:
        """Return the watched-item count used as the cache staleness signal."""

        stmt = (
            select(func.count())
            .select_from(WatchedContent)
            .where(WatchedContent.user_id == user_id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def watched_items(self, user_id: str) -> list[WatchedItem]:
        stmt = (
            select(WatchedContent.movie_id, WatchedContent.watched_at)
            .where(WatchedContent.user_id == user_id)
            .order_by(WatchedContent.watched_at.desc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                WatchedItem(content_id=movie_id, watched_at=watched_at)
                for movie_id, watched_at in result.all()
            ]

    async def watched_ids(self, user_id: str) -> set[str]:
        stmt = select(WatchedContent.movie_id).where(WatchedContent.user_id == user_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return set(result.scalars().all())

    async def recent_history(self, user_id: str, *, limit: int = 10) -> list[HistoryEntry]:
        """Return the most recently watched titles with the user's ratings."""

        stmt = (
            select(Content, WatchedContent.watched_at, Rating.rating_value)
            .select_from(WatchedContent)
            .join(Content, Content.id == WatchedContent.movie_id)
            .outerjoin(
                Rating,
                (Rating.movie_id == WatchedContent.movie_id)
                & (Rating.user_id == WatchedContent.user_id),
            )
            .where(WatchedContent.user_id == user_id)
            .order_by(WatchedContent.watched_at.desc())
            .limit(max(limit, 0))
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        entries: list[HistoryEntry] = []
        for content, watched_at, rating in rows:
            if not content.title:
                continue
            entries.append(
                HistoryEntry(
                    content=ContentRecord.model_validate(content),
                    watched_at=watched_at,
                    rating=rating,
                )
            )
        return entries

    async def preferences(self, user_id: str) -> UserPreference:
        async with self._session_factory() as session:
            profile = await session.get(UserProfile, user_id)
        if profile is None:
            return UserPreference(user_id=user_id)
        return UserPreference(
            user_id=user_id,
            preferred_genre_ids={str(entry) for entry in profile.preferred_genre_ids or []},
            preferred_language_ids={
                str(entry) for entry in profile.preferred_language_ids or []
            },
        )
