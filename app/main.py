"""Entry point for the FastAPI-powered recommendation service."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import Database
from .services.catalog import CatalogLookup
from .services.openrouter import (
    MalformedResponse,
    OpenRouterClient,
    RateLimited,
    RecommendationError,
)
from .services.recommendations import RecommendationService, RecommendationStore
from .services.watch_history import WatchHistoryReader

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    openrouter_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.openrouter_api_url),
            timeout=httpx.Timeout(settings.model_timeout_seconds, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    catalog = CatalogLookup(database.session_factory)
    service = RecommendationService(
        settings,
        catalog,
        WatchHistoryReader(database.session_factory),
        OpenRouterClient(settings, openrouter_http),
        RecommendationStore(database.session_factory),
    )

    fastapi_app.state.recommendation_service = service
    fastapi_app.state.catalog = catalog
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="AI-assisted movie and TV recommendations reconciled against your catalog",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_recommendation_service(fastapi_app: FastAPI) -> RecommendationService:
    service = getattr(fastapi_app.state, "recommendation_service", None)
    if not isinstance(service, RecommendationService):
        raise RuntimeError("Recommendation service not initialised")
    return service


def get_catalog(fastapi_app: FastAPI) -> CatalogLookup:
    catalog = getattr(fastapi_app.state, "catalog", None)
    if not isinstance(catalog, CatalogLookup):
        raise RuntimeError("Catalog lookup not initialised")
    return catalog


async def _read_user_id(request: Request) -> str:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Invalid payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    user_id = payload.get("userId") or payload.get("user_id")
    if not isinstance(user_id, str) or not user_id.strip():
        raise HTTPException(status_code=400, detail="User ID is required")
    return user_id.strip()


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(HTTPException)
    async def _http_error(_: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.post("/api/recommend")
    async def generate_recommendations(request: Request) -> JSONResponse:
        user_id = await _read_user_id(request)
        service = get_recommendation_service(fastapi_app)

        try:
            result = await service.get_recommendations(user_id)
        except RateLimited as exc:
            body = await _error_body(service, user_id, str(exc))
            headers: dict[str, str] = {}
            if exc.retry_after is not None:
                body["retryAfter"] = exc.retry_after
                headers["Retry-After"] = str(exc.retry_after)
            return JSONResponse(body, status_code=429, headers=headers)
        except MalformedResponse as exc:
            logger.warning("Unreadable model output for %s: %s", user_id, exc)
            body = await _error_body(
                service, user_id, "AI provider error. Please try again later."
            )
            return JSONResponse(body, status_code=500)
        except RecommendationError as exc:
            logger.warning("Recommendation generation failed for %s: %s", user_id, exc)
            body = await _error_body(
                service, user_id, "AI provider error. Please try again later."
            )
            return JSONResponse(body, status_code=500)
        except Exception:
            logger.exception("Unexpected failure generating recommendations for %s", user_id)
            body = await _error_body(
                service, user_id, "Failed to generate recommendations"
            )
            return JSONResponse(body, status_code=500)

        return JSONResponse(result.to_payload())

    @fastapi_app.get("/api/recommendations/{user_id}")
    async def stored_recommendations(user_id: str) -> JSONResponse:
        service = get_recommendation_service(fastapi_app)
        cached = await service.cached_recommendations(user_id)
        if cached is None:
            raise HTTPException(status_code=404, detail="No recommendations stored yet")
        return JSONResponse(
            {
                "recommendations": [
                    recommendation.model_dump(mode="json")
                    for recommendation in cached.recommendations
                ],
                "watchedCount": cached.fingerprint,
                "generatedAt": cached.generated_at.isoformat(),
                "model": cached.model,
                "regenerating": service.is_regenerating(user_id),
            }
        )

    @fastapi_app.get("/api/keepalive")
    async def keepalive(request: Request) -> JSONResponse:
        expected = (settings.keepalive_secret or "").strip()
        raw = request.headers.get("authorization", "").strip()
        if not expected or raw != f"Bearer {expected}":
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        try:
            await get_catalog(fastapi_app).ping()
        except Exception as exc:
            logger.warning("Keepalive query failed: %s", exc)
            return JSONResponse({"ok": False, "error": str(exc)}, status_code=500)
        return JSONResponse({"ok": True})


async def _error_body(
    service: RecommendationService, user_id: str, message: str
) -> dict[str, Any]:
    """Build an error payload carrying the last stored set when there is one."""

    body: dict[str, Any] = {"error": message}
    try:
        cached = await service.cached_recommendations(user_id)
    except Exception:  # pragma: no cover - the error response must still go out
        logger.exception("Could not load cached recommendations for %s", user_id)
        return body
    if cached is not None:
        body["recommendations"] = [
            recommendation.model_dump(mode="json")
            for recommendation in cached.recommendations
        ]
        body["generatedAt"] = cached.generated_at.isoformat()
    return body


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
