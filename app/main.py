"""
FastAPI application entrypoint for the company research agent.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_pipeline_runner


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    # Only tear down a runner that was actually built for this process.
    if get_pipeline_runner.cache_info().currsize:
        await get_pipeline_runner().shutdown()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Company Research Agent",
        version="0.1.0",
        description=(
            "Streams search-augmented company research, investment memos and CRM "
            "updates for venture deal flow."
        ),
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
