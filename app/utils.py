"""Utility helpers for the CineCue service."""

from __future__ import annotations

import hashlib
import json
import re
import unicodedata
from typing import Any


def slugify(value: str) -> str:
    """Return a URL-friendly slug."""

    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value)
    value = value.strip("-")
    value = re.sub(r"-+", "-", value)
    return value.lower() or "title"


def normalize_title(value: str | None) -> str:
    """Case-fold and trim a title so catalog and model spellings compare equal."""

    if not value:
        return ""
    return unicodedata.normalize("NFKC", value).strip().casefold()


def extract_json_array(content: str) -> list[Any]:
    """Parse the region between the first ``[`` and the last ``]`` of ``content``.

    Models tend to wrap the requested array in prose or markdown fences, so
    anything outside the outermost brackets is ignored.
    """

    start = content.find("[")
    end = content.rfind("]")
    if start == -1 or end <= start:
        raise ValueError("No JSON array found in response")

    try:
        payload = json.loads(content[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON array produced by the model") from exc
    if not isinstance(payload, list):  # pragma: no cover - brackets imply a list
        raise ValueError("Model payload is not a JSON array")
    return payload


def synthetic_recommendation_id(title: str, content_type: str) -> str:
    """Return a stable identifier for a suggestion missing from the catalog."""

    normalized = normalize_title(title)
    digest = hashlib.sha1(f"{normalized}|{content_type}".encode("utf-8")).hexdigest()
    return f"ai-rec-{slugify(normalized)}-{content_type}-{digest[:8]}"
