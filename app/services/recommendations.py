"""High level orchestration for recommendation generation and caching."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings
from ..db_models import UserRecommendation
from ..models import CachedRecommendationSet, ContentRecord, Recommendation
from .catalog import CatalogLookup
from .openrouter import OpenRouterClient
from .prompt_builder import build_prompt
from .reconciler import reconcile
from .watch_history import WatchHistoryReader

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class RecommendationResult:
    """Recommendations returned to the caller along with cache details."""

    recommendations: list[Recommendation]
    fingerprint: int
    cached: bool
    generated_at: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "recommendations": [
                recommendation.model_dump(mode="json")
                for recommendation in self.recommendations
            ],
            "cached": self.cached,
            "watchedCount": self.fingerprint,
            "generatedAt": (
                self.generated_at.isoformat() if self.generated_at else None
            ),
        }


class RecommendationStore:
    """Persists the single recommendation row kept for each user."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def load(self, user_id: str) -> CachedRecommendationSet | None:
        async with self._session_factory() as session:
            row = await session.get(UserRecommendation, user_id)
            if row is None:
                return None
            try:
                return CachedRecommendationSet(
                    user_id=row.user_id,
                    recommendations=row.recommendations or [],
                    fingerprint=row.watched_count,
                    generated_at=row.generated_at,
                    model=row.model,
                )
            except ValidationError as exc:
                logger.warning(
                    "Ignoring unreadable cached recommendations for %s: %s",
                    user_id,
                    exc,
                )
                return None

    async def upsert(self, entry: CachedRecommendationSet) -> None:
        """Insert or overwrite the user's row in a single statement."""

        values = {
            "user_id": entry.user_id,
            "recommendations": [
                recommendation.model_dump(mode="json")
                for recommendation in entry.recommendations
            ],
            "watched_count": entry.fingerprint,
            "model": entry.model,
            "generated_at": entry.generated_at,
        }
        async with self._session_factory() as session:
            insert = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
            if insert is None:
                await session.merge(UserRecommendation(**values))
            else:
                stmt = insert(UserRecommendation).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[UserRecommendation.user_id],
                    set_={
                        key: stmt.excluded[key] for key in values if key != "user_id"
                    },
                )
                await session.execute(stmt)
            await session.commit()


class RecommendationService:
    """Serves cached recommendations and regenerates them when history changes."""

    def __init__(
        self,
        settings: Settings,
        catalog: CatalogLookup,
        history: WatchHistoryReader,
        gateway: OpenRouterClient,
        store: RecommendationStore,
    ):
        self._settings = settings
        self._catalog = catalog
        self._history = history
        self._gateway = gateway
        self._store = store
        self._jobs: dict[str, tuple[int, asyncio.Task[CachedRecommendationSet]]] = {}

    async def get_recommendations(self, user_id: str) -> RecommendationResult:
        """Return the user's recommendations, regenerating them when stale.

        The watched-item count acts as the fingerprint: a stored set is reused
        as long as the count is unchanged. Regeneration runs in its own task so
        a caller that goes away does not discard a paid-for model call.
        """

        fingerprint, cached = await asyncio.gather(
            self._history.fingerprint(user_id), self._store.load(user_id)
        )
        if cached is not None and cached.is_fresh(fingerprint):
            logger.info(
                "Serving cached recommendations for %s (fingerprint %s)",
                user_id,
                fingerprint,
            )
            return RecommendationResult(
                recommendations=cached.recommendations,
                fingerprint=fingerprint,
                cached=True,
                generated_at=cached.generated_at,
            )

        logger.info(
            "Regenerating recommendations for %s (stored fingerprint %s, current %s)",
            user_id,
            cached.fingerprint if cached is not None else None,
            fingerprint,
        )
        stored = await asyncio.shield(self._regeneration_task(user_id, fingerprint))
        return RecommendationResult(
            recommendations=stored.recommendations,
            fingerprint=stored.fingerprint,
            cached=False,
            generated_at=stored.generated_at,
        )

    async def cached_recommendations(self, user_id: str) -> CachedRecommendationSet | None:
        """Return the last stored set without checking freshness."""

        return await self._store.load(user_id)

    def is_regenerating(self, user_id: str) -> bool:
        job = self._jobs.get(user_id)
        return job is not None and not job[1].done()

    def _regeneration_task(
        self, user_id: str, fingerprint: int
    ) -> asyncio.Task[CachedRecommendationSet]:
        if self._settings.single_flight:
            existing = self._jobs.get(user_id)
            # Only join work started for the same watched count.
            if existing is not None and existing[0] == fingerprint and not existing[1].done():
                logger.info("Joining in-flight regeneration for %s", user_id)
                return existing[1]

        task = asyncio.create_task(self._regenerate(user_id, fingerprint))

        def _finished(done: asyncio.Task[CachedRecommendationSet]) -> None:
            job = self._jobs.get(user_id)
            if job is not None and job[1] is done:
                self._jobs.pop(user_id, None)
            # Retrieve the outcome so abandoned tasks do not warn on collection.
            if not done.cancelled() and done.exception() is not None:
                logger.debug(
                    "Regeneration for %s ended with %r", user_id, done.exception()
                )

        task.add_done_callback(_finished)
        if self._settings.single_flight:
            self._jobs[user_id] = (fingerprint, task)
        return task

    async def _regenerate(self, user_id: str, fingerprint: int) -> CachedRecommendationSet:
        names, history, watched_ids, preferences = await asyncio.gather(
            self._catalog.reference_names(),
            self._history.recent_history(
                user_id, limit=self._settings.history_prompt_limit
            ),
            self._history.watched_ids(user_id),
            self._history.preferences(user_id),
        )

        candidates: list[ContentRecord] = []
        if self._settings.constrain_to_catalog:
            candidates = await self._catalog.list_candidates(
                exclude_ids=watched_ids,
                limit=self._settings.candidate_prompt_limit,
            )

        prompt = build_prompt(
            history,
            preferences,
            candidates,
            names=names,
            history_limit=self._settings.history_prompt_limit,
            candidate_limit=self._settings.candidate_prompt_limit,
        )
        logger.debug("Recommendation prompt for %s:\n%s", user_id, prompt)

        suggestions = await self._gateway.request_suggestions(prompt)

        matches = await self._catalog.fetch_by_titles(
            suggestion.title for suggestion in suggestions
        )
        platforms = await self._catalog.ott_platforms_for(
            [record.id for record in matches]
        )
        recommendations = [
            recommendation
            for recommendation in reconcile(suggestions, matches, platforms=platforms)
            if recommendation.id not in watched_ids
        ]
        if not recommendations:
            logger.info("No recommendations could be produced for %s", user_id)

        entry = CachedRecommendationSet(
            user_id=user_id,
            recommendations=recommendations,
            fingerprint=fingerprint,
            generated_at=datetime.utcnow(),
            model=getattr(self._gateway, "model", None),
        )
        await self._store.upsert(entry)
        logger.info(
            "Stored %s recommendations for %s (fingerprint %s)",
            len(recommendations),
            user_id,
            fingerprint,
        )
        return entry
