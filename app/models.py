"""Pydantic models describing catalog rows, model output and recommendations."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

ContentType = Literal["movie", "tv_show"]

_TV_ALIASES = {
    "tv_show",
    "tv",
    "tvshow",
    "tv show",
    "tv-show",
    "show",
    "series",
    "tv series",
    "miniseries",
}


def normalize_content_type(value: object) -> ContentType:
    """Map loose model spellings onto the catalog content types."""

    if isinstance(value, str) and value.strip().lower() in _TV_ALIASES:
        return "tv_show"
    return "movie"


class ContentRecord(BaseModel):
    """Read-only catalog entry for a movie or TV show."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    release_year: int | None = None
    type: ContentType = "movie"
    genre_ids: list[str] = Field(default_factory=list)
    language_ids: list[str] = Field(default_factory=list)
    poster_url: str | None = None
    overview: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> ContentType:
        return normalize_content_type(value)

    @field_validator("genre_ids", "language_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value: object) -> list[str]:
        if not value:
            return []
        if isinstance(value, (str, int)):
            return [str(value)]
        return [str(entry) for entry in value]  # type: ignore[union-attr]


class WatchedItem(BaseModel):
    """A title the user marked as watched."""

    content_id: str
    watched_at: datetime


class HistoryEntry(BaseModel):
    """Watched item joined with its catalog row and the user's own rating."""

    content: ContentRecord
    watched_at: datetime
    rating: float | None = None


class UserPreference(BaseModel):
    """Genres and languages the user asked to see more of."""

    user_id: str
    preferred_genre_ids: set[str] = Field(default_factory=set)
    preferred_language_ids: set[str] = Field(default_factory=set)


class ReferenceNames(BaseModel):
    """Display names for genre and language identifiers."""

    genres: dict[str, str] = Field(default_factory=dict)
    languages: dict[str, str] = Field(default_factory=dict)

    def genre_names(self, ids: object) -> list[str]:
        return _resolve(self.genres, ids)

    def language_names(self, ids: object) -> list[str]:
        return _resolve(self.languages, ids)


def _resolve(mapping: dict[str, str], ids: object) -> list[str]:
    if not ids:
        return []
    names: list[str] = []
    for entry in ids:  # type: ignore[union-attr]
        name = mapping.get(str(entry))
        if name and name not in names:
            names.append(name)
    return names


class ModelSuggestion(BaseModel):
    """Untrusted recommendation parsed from the model's reply."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(validation_alias=AliasChoices("title", "name"))
    type: ContentType = "movie"
    overview: str | None = Field(
        default=None,
        validation_alias=AliasChoices("overview", "reason", "description"),
    )
    year: int | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _require_title(cls, value: object) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Suggestion title must be a non-empty string")
        return value.strip()

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> ContentType:
        return normalize_content_type(value)

    @field_validator("overview", mode="before")
    @classmethod
    def _clean_overview(cls, value: object) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("year", mode="before")
    @classmethod
    def _parse_year(cls, value: object) -> int | None:
        if value is None or value == "":
            return None
        try:
            return int(str(value).strip()[:4])
        except (TypeError, ValueError):
            return None


class OttPlatform(BaseModel):
    """Streaming platform carrying a catalog title."""

    name: str
    icon_url: str | None = None


class Recommendation(BaseModel):
    """A reconciled recommendation served to the user."""

    id: str
    title: str
    overview: str | None = None
    release_year: int | None = None
    type: ContentType = "movie"
    poster_url: str | None = None
    language_ids: list[str] = Field(default_factory=list)
    genre_ids: list[str] = Field(default_factory=list)
    ott_platforms: list[OttPlatform] = Field(default_factory=list)

    @property
    def is_synthetic(self) -> bool:
        return self.id.startswith("ai-rec-")


class CachedRecommendationSet(BaseModel):
    """The single stored recommendation list for a user."""

    user_id: str
    recommendations: list[Recommendation] = Field(default_factory=list)
    fingerprint: int
    generated_at: datetime
    model: str | None = None

    def is_fresh(self, fingerprint: int) -> bool:
        return self.fingerprint == fingerprint
