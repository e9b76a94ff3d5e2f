"""Prompt rendering tests."""

from __future__ import annotations

from datetime import datetime, timedelta

from app.models import ContentRecord, HistoryEntry, ReferenceNames, UserPreference
from app.services.prompt_builder import build_prompt

NAMES = ReferenceNames(
    genres={"g1": "Drama", "g2": "Sci-Fi", "g3": "Crime"},
    languages={"l1": "English", "l2": "Korean"},
)


def _history(count: int) -> list[HistoryEntry]:
    now = datetime(2024, 5, 1)
    return [
        HistoryEntry(
            content=ContentRecord(
                id=f"w{index}",
                title=f"Watched {index}",
                release_year=2000 + index,
                genre_ids=["g1"],
                language_ids=["l1"],
            ),
            watched_at=now - timedelta(days=index),
            rating=4 if index == 0 else None,
        )
        for index in range(count)
    ]


def test_history_lines_include_resolved_names_and_ratings() -> None:
    prompt = build_prompt(_history(2), None, names=NAMES)

    assert "- Watched 0 (2000, movie), Genres: Drama, Languages: English, Your rating: 4/5" in prompt
    assert "- Watched 1 (2001, movie), Genres: Drama, Languages: English, Your rating: Not rated" in prompt


def test_history_is_bounded() -> None:
    prompt = build_prompt(_history(5), None, names=NAMES, history_limit=3)

    assert "Watched 2" in prompt
    assert "Watched 3" not in prompt


def test_empty_history_and_preferences_render_placeholders() -> None:
    prompt = build_prompt([], UserPreference(user_id="u1"), names=NAMES)

    assert "No content watched yet." in prompt
    assert "Preferred genres: any" in prompt
    assert "Preferred languages: any" in prompt


def test_preferences_resolve_to_names() -> None:
    preferences = UserPreference(
        user_id="u1",
        preferred_genre_ids={"g3", "g2", "missing"},
        preferred_language_ids={"l2"},
    )

    prompt = build_prompt([], preferences, names=NAMES)

    assert "Preferred genres: Crime, Sci-Fi" in prompt
    assert "Preferred languages: Korean" in prompt


def test_candidates_constrain_the_model() -> None:
    candidates = [
        ContentRecord(id=f"c{index}", title=f"Candidate {index}", release_year=2020, type="tv_show")
        for index in range(4)
    ]

    prompt = build_prompt([], None, candidates, names=NAMES, candidate_limit=2)

    assert "selecting ONLY from the following list of titles" in prompt
    assert "- Candidate 0 (2020, tv_show, Genres: N/A, Languages: N/A)" in prompt
    assert "Candidate 1" in prompt
    assert "Candidate 2" not in prompt
    assert "Do NOT recommend any movie or TV show that is not in the list above." in prompt


def test_unconstrained_prompt_still_demands_json_only() -> None:
    prompt = build_prompt(_history(1), None, names=NAMES)

    assert "ONLY from the following list" not in prompt
    assert "Respond ONLY with a JSON array, no prose and no markdown" in prompt
    assert '{"title": "Title", "type": "movie", "overview": "One sentence."}' in prompt
