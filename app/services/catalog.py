"""Read-only access to the content catalog and its reference tables."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Sequence

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import Content, ContentOttPlatform, Genre, Language, OttPlatformRecord
from ..models import ContentRecord, OttPlatform, ReferenceNames
from ..utils import normalize_title

logger = logging.getLogger(__name__)


class CatalogLookup:
    """Resolve catalog rows and reference names.

    Every query opens its own session so callers may gather several lookups
    concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def reference_names(self) -> ReferenceNames:
        genres, languages = await asyncio.gather(
            self._name_map(Genre), self._name_map(Language)
        )
        return ReferenceNames(genres=genres, languages=languages)

    async def _name_map(self, model: type[Genre] | type[Language]) -> dict[str, str]:
        async with self._session_factory() as session:
            result = await session.execute(select(model.id, model.name))
            return {str(row_id): name for row_id, name in result.all() if name}

    async def fetch_by_ids(self, ids: Iterable[str]) -> list[ContentRecord]:
        wanted = [str(entry) for entry in ids if entry]
        if not wanted:
            return []
        async with self._session_factory() as session:
            result = await session.execute(select(Content).where(Content.id.in_(wanted)))
            rows = {row.id: row for row in result.scalars().all() if row.title}
        return [self._to_record(rows[entry]) for entry in wanted if entry in rows]

    async def fetch_by_titles(self, titles: Iterable[str]) -> list[ContentRecord]:
        """Return catalog rows whose normalised title is among ``titles``."""

        keys = {normalize_title(title) for title in titles}
        keys.discard("")
        if not keys:
            return []

        # SQL lower() and trim() only handle ASCII case and spaces, so titles
        # are folded with normalize_title rather than in the query.
        stmt = (
            select(Content)
            .where(Content.title.is_not(None), Content.title != "")
            .order_by(Content.id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()
        return [
            self._to_record(row)
            for row in rows
            if normalize_title(row.title) in keys
        ]

    async def list_candidates(
        self, *, exclude_ids: Iterable[str] = (), limit: int = 50
    ) -> list[ContentRecord]:
        """Return titled content the user has not watched yet."""

        excluded = [str(entry) for entry in exclude_ids if entry]
        stmt = select(Content).where(Content.title.is_not(None), Content.title != "")
        if excluded:
            stmt = stmt.where(Content.id.not_in(excluded))
        stmt = stmt.order_by(
            Content.release_year.desc().nulls_last(), Content.title
        ).limit(max(limit, 0))
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_record(row) for row in result.scalars().all()]

    async def ott_platforms_for(
        self, ids: Sequence[str]
    ) -> dict[str, list[OttPlatform]]:
        if not ids:
            return {}
        stmt = (
            select(ContentOttPlatform.movie_id, OttPlatformRecord.name, OttPlatformRecord.icon_url)
            .select_from(ContentOttPlatform)
            .join(
                OttPlatformRecord,
                OttPlatformRecord.id == ContentOttPlatform.ott_platform_id,
            )
            .where(ContentOttPlatform.movie_id.in_(list(ids)))
            .order_by(ContentOttPlatform.movie_id, OttPlatformRecord.name)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            platforms: dict[str, list[OttPlatform]] = {}
            for movie_id, name, icon_url in result.all():
                platforms.setdefault(movie_id, []).append(
                    OttPlatform(name=name, icon_url=icon_url)
                )
        return platforms

    async def ping(self) -> None:
        """Issue a trivial query so the database registers activity."""

        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))

    @staticmethod
    def _to_record(row: Content) -> ContentRecord:
        return ContentRecord.model_validate(row)
