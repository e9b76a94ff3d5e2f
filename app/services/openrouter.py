"""Integration helpers for the OpenRouter API."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import ModelSuggestion
from ..utils import extract_json_array

logger = logging.getLogger(__name__)


class RecommendationError(RuntimeError):
    """Base class for failures while generating recommendations."""


class RateLimited(RecommendationError):
    """The provider throttled the request (HTTP 429)."""

    def __init__(self, message: str, *, retry_after: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(RecommendationError):
    """The provider failed, timed out or answered with a non-success status."""


class MalformedResponse(UpstreamError):
    """The provider answered but no suggestion array could be recovered."""


class OpenRouterClient:
    """Client responsible for talking to OpenRouter."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    @property
    def model(self) -> str:
        return self._settings.openrouter_model

    async def request_suggestions(
        self,
        prompt: str,
        *,
        api_key: str | None = None,
        model: str | None = None,
    ) -> list[ModelSuggestion]:
        """Send ``prompt`` to the completion endpoint and parse the suggestions."""

        resolved_key = api_key or self._settings.openrouter_api_key
        if not resolved_key:
            raise UpstreamError("OpenRouter API key is required to generate recommendations")

        payload = {
            "model": model or self._settings.openrouter_model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self._settings.model_max_tokens,
            "temperature": self._settings.model_temperature,
        }
        headers = {
            "Authorization": f"Bearer {resolved_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self._settings.site_url,
            "X-Title": self._settings.site_name,
        }

        try:
            response = await self._client.post(
                "/chat/completions", json=payload, headers=headers
            )
        except httpx.TimeoutException as exc:
            logger.warning("OpenRouter request timed out: %s", exc)
            raise UpstreamError("Timed out waiting for the AI provider") from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "OpenRouter request failed (%s): %s", exc.__class__.__name__, exc
            )
            raise UpstreamError("Could not reach the AI provider") from exc

        if response.status_code == 429:
            retry_after = self._parse_retry_after(response.headers.get("retry-after"))
            logger.warning("OpenRouter rate limit reached (retry after %s)", retry_after)
            raise RateLimited(
                "Rate limit reached for OpenRouter. Please try again in 1 minute.",
                retry_after=retry_after,
            )
        if response.status_code >= 400:
            logger.warning(
                "OpenRouter returned HTTP %s: %s",
                response.status_code,
                response.text[:300],
            )
            raise UpstreamError(
                f"AI provider returned HTTP {response.status_code}"
            )

        raw_items = self._recover_items(response.text)
        suggestions: list[ModelSuggestion] = []
        for entry in raw_items:
            if not isinstance(entry, dict):
                continue
            try:
                suggestions.append(ModelSuggestion.model_validate(entry))
            except ValidationError:
                logger.debug("Skipping unusable suggestion: %r", entry)
        logger.info("Model returned %s usable suggestions", len(suggestions))
        return suggestions

    def _recover_items(self, body: str) -> list[Any]:
        """Locate the suggestion array, first in the message text then in the raw body."""

        try:
            return extract_json_array(self._message_content(body))
        except ValueError as exc:
            first_error = exc
            logger.info("Falling back to raw response body: %s", exc)

        try:
            if self._is_completion_envelope(body):
                # The raw body would only yield the envelope's own choices array.
                raise first_error
            return extract_json_array(body)
        except ValueError as exc:
            logger.warning(
                "Malformed model response (%s); excerpt: %r", exc, body[:300]
            )
            raise MalformedResponse(
                "The AI provider returned an unreadable response"
            ) from exc

    @staticmethod
    def _message_content(body: str) -> str:
        try:
            data = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ValueError("Response body is not JSON") from exc
        if not isinstance(data, dict):
            raise ValueError("Response body is not an object")
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            raise ValueError("Model returned no choices")
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ValueError("Model response missing content")
        return content

    @staticmethod
    def _is_completion_envelope(body: str) -> bool:
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            return False
        return isinstance(data, dict) and "choices" in data

    @staticmethod
    def _parse_retry_after(value: str | None) -> int | None:
        if not value:
            return None
        try:
            return max(int(float(value)), 0)
        except (TypeError, ValueError):
            return None
