"""Module executed when running ``python -m cinecue``."""

from __future__ import annotations

import uvicorn

from app.config import settings


def main() -> None:
    """Serve the recommendation API with uvicorn using the configured settings."""

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
        log_level="debug" if settings.environment == "development" else "info",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
