"""Render the recommendation prompt sent to the language model."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..models import ContentRecord, HistoryEntry, ReferenceNames, UserPreference

RECOMMENDATION_TEMPLATE = """
You are a movie and TV show recommendation AI.
Recommend {count_range} movies or TV shows for the user{scope}.
{candidate_block}
Base your choices on their preferred genres and languages:
- Preferred genres: {preferred_genres}
- Preferred languages: {preferred_languages}

Their recently watched content:
{watched}

Rules:
1. Never recommend something they have already watched.
2. Give each recommendation a one-sentence "overview" explaining why it fits.
3. Set "type" to "movie" or "tv_show".{candidate_rule}

Respond ONLY with a JSON array, no prose and no markdown, shaped exactly like:
[
  {{"title": "Title", "type": "movie", "overview": "One sentence."}},
  {{"title": "Another Title", "type": "tv_show", "overview": "One sentence."}}
]
"""

CANDIDATE_RULE = "\n4. Do NOT recommend any movie or TV show that is not in the list above."


def _content_type_label(content_type: str) -> str:
    return "TV show" if content_type == "tv_show" else "movie"


def _join_or(values: Sequence[str], fallback: str) -> str:
    return ", ".join(values) if values else fallback


def _format_rating(value: float | None) -> str:
    if value is None:
        return "Not rated"
    if float(value).is_integer():
        return f"{int(value)}/5"
    return f"{value:g}/5"


def _render_history(
    history: Sequence[HistoryEntry], names: ReferenceNames, limit: int
) -> str:
    lines: list[str] = []
    for entry in history[: max(limit, 0)]:
        content = entry.content
        lines.append(
            "- {title} ({year}, {kind}), Genres: {genres}, Languages: {languages}, "
            "Your rating: {rating}".format(
                title=content.title,
                year=content.release_year or "?",
                kind=_content_type_label(content.type),
                genres=_join_or(names.genre_names(content.genre_ids), "N/A"),
                languages=_join_or(names.language_names(content.language_ids), "N/A"),
                rating=_format_rating(entry.rating),
            )
        )
    return "\n".join(lines) or "No content watched yet."


def _render_candidates(
    candidates: Sequence[ContentRecord], names: ReferenceNames, limit: int
) -> str:
    lines = []
    for content in candidates[: max(limit, 0)]:
        lines.append(
            "- {title} ({year}, {kind}, Genres: {genres}, Languages: {languages})".format(
                title=content.title,
                year=content.release_year or "?",
                kind=content.type,
                genres=_join_or(names.genre_names(content.genre_ids), "N/A"),
                languages=_join_or(names.language_names(content.language_ids), "N/A"),
            )
        )
    return "\n".join(lines)


def _preferred(mapping_lookup, ids: Iterable[str]) -> str:
    resolved = sorted(mapping_lookup(sorted(ids)))
    return ", ".join(resolved) if resolved else "any"


def build_prompt(
    history: Sequence[HistoryEntry],
    preferences: UserPreference | None,
    candidates: Sequence[ContentRecord] = (),
    *,
    names: ReferenceNames | None = None,
    history_limit: int = 10,
    candidate_limit: int = 50,
) -> str:
    """Return the prompt for the given watch history and preferences.

    When ``candidates`` is non-empty the model is told to choose only from
    that list and to return fewer titles.
    """

    names = names or ReferenceNames()
    genre_ids = preferences.preferred_genre_ids if preferences else set()
    language_ids = preferences.preferred_language_ids if preferences else set()

    candidate_text = _render_candidates(candidates, names, candidate_limit)
    if candidate_text:
        scope = ", selecting ONLY from the following list of titles"
        candidate_block = f"\n{candidate_text}\n"
        candidate_rule = CANDIDATE_RULE
        count_range = "exactly 5-7"
    else:
        scope = ""
        candidate_block = ""
        candidate_rule = ""
        count_range = "5-10"

    return RECOMMENDATION_TEMPLATE.format(
        count_range=count_range,
        scope=scope,
        candidate_block=candidate_block,
        preferred_genres=_preferred(names.genre_names, genre_ids),
        preferred_languages=_preferred(names.language_names, language_ids),
        watched=_render_history(history, names, history_limit),
        candidate_rule=candidate_rule,
    ).strip()
