"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Awaitable, Callable

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.database import Database  # noqa: E402
from app.db_models import (  # noqa: E402
    Content,
    ContentOttPlatform,
    Genre,
    Language,
    OttPlatformRecord,
    Rating,
    UserProfile,
    WatchedContent,
)

WATCHED_BASE = datetime(2024, 5, 1, 12, 0, 0)


async def _seed_catalog(database: Database) -> None:
    """Populate a small catalog plus a user who has watched three titles."""

    async with database.session_factory() as session:
        session.add_all(
            [
                Genre(id="g-drama", name="Drama"),
                Genre(id="g-scifi", name="Sci-Fi"),
                Genre(id="g-crime", name="Crime"),
                Language(id="l-en", name="English"),
                Language(id="l-ko", name="Korean"),
                OttPlatformRecord(
                    id="p-netflix", name="Netflix", icon_url="https://img.test/netflix.png"
                ),
                OttPlatformRecord(id="p-prime", name="Prime Video"),
                Content(
                    id="m-matrix",
                    title="The Matrix",
                    release_year=1999,
                    type="movie",
                    genre_ids=["g-scifi"],
                    language_ids=["l-en"],
                    poster_url="https://img.test/matrix.jpg",
                    overview="A hacker learns the truth about reality.",
                ),
                Content(
                    id="m-heat",
                    title="Heat",
                    release_year=1995,
                    type="movie",
                    genre_ids=["g-crime"],
                    language_ids=["l-en"],
                ),
                Content(
                    id="m-parasite",
                    title="Parasite",
                    release_year=2019,
                    type="movie",
                    genre_ids=["g-drama"],
                    language_ids=["l-ko"],
                ),
                Content(
                    id="s-dark",
                    title="Dark",
                    release_year=2017,
                    type="tv_show",
                    genre_ids=["g-scifi", "g-drama"],
                    language_ids=[],
                ),
                Content(
                    id="m-arrival",
                    title="Arrival",
                    release_year=2016,
                    type="movie",
                    genre_ids=["g-scifi"],
                    language_ids=["l-en"],
                ),
                Content(id="m-untitled", title=None, release_year=2023, type="movie"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                ContentOttPlatform(movie_id="m-matrix", ott_platform_id="p-prime"),
                ContentOttPlatform(movie_id="m-matrix", ott_platform_id="p-netflix"),
                WatchedContent(
                    user_id="u1", movie_id="m-heat", watched_at=WATCHED_BASE
                ),
                WatchedContent(
                    user_id="u1",
                    movie_id="m-parasite",
                    watched_at=WATCHED_BASE + timedelta(days=1),
                ),
                WatchedContent(
                    user_id="u1",
                    movie_id="s-dark",
                    watched_at=WATCHED_BASE + timedelta(days=2),
                ),
                Rating(user_id="u1", movie_id="m-parasite", rating_value=5),
                Rating(user_id="u2", movie_id="s-dark", rating_value=1),
                UserProfile(
                    user_id="u1",
                    preferred_genre_ids=["g-scifi"],
                    preferred_language_ids=["l-en"],
                ),
            ]
        )
        await session.commit()


@pytest.fixture
def seeded_database(tmp_path) -> Callable[[], Awaitable[Database]]:
    """Return a coroutine factory creating a seeded database under ``tmp_path``.

    The database has to be opened inside the event loop the test runs in, so
    tests call the factory from their own runner.
    """

    async def factory() -> Database:
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'cinecue.db'}")
        await database.create_all()
        await _seed_catalog(database)
        return database

    return factory
