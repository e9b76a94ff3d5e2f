"""Catalog reconciliation tests."""

from __future__ import annotations

from app.models import ContentRecord, ModelSuggestion, OttPlatform
from app.services.reconciler import reconcile
from app.utils import synthetic_recommendation_id

MATRIX = ContentRecord(
    id="m-matrix",
    title="The Matrix",
    release_year=1999,
    type="movie",
    genre_ids=["g-scifi"],
    language_ids=["l-en"],
    poster_url="https://img.test/matrix.jpg",
    overview="A hacker learns the truth.",
)
HEAT = ContentRecord(id="m-heat", title="Heat", release_year=1995, overview="")


def test_match_is_case_and_whitespace_insensitive() -> None:
    suggestions = [ModelSuggestion(title="the MATRIX ", type="movie", overview="Model text")]

    [recommendation] = reconcile(suggestions, [MATRIX])

    assert recommendation.id == "m-matrix"
    assert recommendation.title == "The Matrix"
    assert recommendation.release_year == 1999
    assert recommendation.poster_url == "https://img.test/matrix.jpg"
    assert recommendation.genre_ids == ["g-scifi"]
    assert recommendation.overview == "A hacker learns the truth."


def test_empty_catalog_overview_falls_back_to_model_text() -> None:
    suggestions = [ModelSuggestion(title="Heat", overview="Pacino versus De Niro.")]

    [recommendation] = reconcile(suggestions, [HEAT])

    assert recommendation.id == "m-heat"
    assert recommendation.overview == "Pacino versus De Niro."


def test_matched_titles_carry_platforms() -> None:
    platforms = {"m-matrix": [OttPlatform(name="Netflix")]}

    [recommendation] = reconcile(
        [ModelSuggestion(title="The Matrix")], [MATRIX], platforms=platforms
    )

    assert [platform.name for platform in recommendation.ott_platforms] == ["Netflix"]


def test_unmatched_suggestion_becomes_deterministic_placeholder() -> None:
    suggestion = ModelSuggestion(title="Ghost Movie", type="movie", overview="Spooky.")

    first = reconcile([suggestion], [MATRIX])
    second = reconcile([ModelSuggestion(title="Ghost Movie", type="movie")], [])

    assert first[0].id == second[0].id == synthetic_recommendation_id("Ghost Movie", "movie")
    assert first[0].is_synthetic
    assert first[0].overview == "Spooky."
    assert first[0].genre_ids == []
    assert first[0].language_ids == []
    assert first[0].ott_platforms == []
    assert first[0].release_year is None


def test_duplicates_collapse_to_first_occurrence_in_order() -> None:
    suggestions = [
        ModelSuggestion(title="Ghost Movie"),
        ModelSuggestion(title="The Matrix", overview="first"),
        ModelSuggestion(title="THE MATRIX"),
        ModelSuggestion(title="ghost movie "),
        ModelSuggestion(title="Heat"),
    ]

    recommendations = reconcile(suggestions, [MATRIX, HEAT])
    ids = [recommendation.id for recommendation in recommendations]

    assert len(ids) == len(set(ids))
    assert ids == [synthetic_recommendation_id("Ghost Movie", "movie"), "m-matrix", "m-heat"]


def test_first_catalog_row_wins_for_duplicate_titles() -> None:
    remake = ContentRecord(id="m-matrix-2", title="the matrix", release_year=2031)

    [recommendation] = reconcile([ModelSuggestion(title="The Matrix")], [MATRIX, remake])

    assert recommendation.id == "m-matrix"
