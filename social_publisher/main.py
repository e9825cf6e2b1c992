"""
FastAPI application entrypoint for the social publisher OAuth endpoints.
"""

from __future__ import annotations

from fastapi import FastAPI

from social_publisher.api.routes import router as api_router
from social_publisher.core.config import get_settings
from social_publisher.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Social Publisher",
        version="0.1.0",
        description="OAuth connection endpoints for the social media publishing library.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
