"""Match model suggestions against the catalog."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from ..models import ContentRecord, ModelSuggestion, OttPlatform, Recommendation
from ..utils import normalize_title, synthetic_recommendation_id

logger = logging.getLogger(__name__)


def index_by_title(records: Sequence[ContentRecord]) -> dict[str, ContentRecord]:
    """Map normalised titles to the first catalog record carrying them."""

    index: dict[str, ContentRecord] = {}
    for record in records:
        key = normalize_title(record.title)
        if key and key not in index:
            index[key] = record
    return index


def reconcile(
    suggestions: Sequence[ModelSuggestion],
    catalog_candidates: Sequence[ContentRecord],
    *,
    platforms: Mapping[str, Sequence[OttPlatform]] | None = None,
) -> list[Recommendation]:
    """Turn untrusted suggestions into a de-duplicated recommendation list.

    Suggestions are matched on exact normalised title only. A suggestion with
    no catalog row becomes a synthetic placeholder whose id depends solely on
    its normalised title and type. Output order follows the suggestions and
    the first occurrence of an id wins.
    """

    index = index_by_title(catalog_candidates)
    platforms = platforms or {}
    recommendations: list[Recommendation] = []
    seen: set[str] = set()
    matched = 0

    for suggestion in suggestions:
        key = normalize_title(suggestion.title)
        if not key:
            continue
        record = index.get(key)
        if record is not None:
            matched += 1
            recommendation = Recommendation(
                id=record.id,
                title=record.title,
                overview=(record.overview or "").strip() or suggestion.overview,
                release_year=record.release_year,
                type=record.type,
                poster_url=record.poster_url,
                language_ids=list(record.language_ids),
                genre_ids=list(record.genre_ids),
                ott_platforms=list(platforms.get(record.id, ())),
            )
        else:
            recommendation = Recommendation(
                id=synthetic_recommendation_id(suggestion.title, suggestion.type),
                title=suggestion.title.strip(),
                overview=suggestion.overview,
                type=suggestion.type,
            )

        if recommendation.id in seen:
            continue
        seen.add(recommendation.id)
        recommendations.append(recommendation)

    logger.info(
        "Reconciled %s suggestions: %s catalog matches, %s kept",
        len(suggestions),
        matched,
        len(recommendations),
    )
    return recommendations
