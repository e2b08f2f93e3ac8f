"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tumorlens.api.routes import router, ui_router
from tumorlens.config import Settings, get_settings
from tumorlens.pipeline.client import PredictionClient
from tumorlens.pipeline.session import ClassificationSession

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, settings: Settings, http_client: httpx.AsyncClient) -> None:
    """Attach settings, prediction client and session to the app state."""
    client = PredictionClient(
        http_client,
        base_url=settings.api_url,
        predict_path=settings.predict_path,
        timeout=settings.request_timeout,
    )
    app.state.settings = settings
    app.state.prediction_client = client
    app.state.session = ClassificationSession(
        client,
        max_file_size=settings.max_file_size,
        sample_path=settings.sample_image,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    http_client = httpx.AsyncClient()
    init_state(app, settings, http_client)

    logger.info(
        "Starting TumorLens (endpoint=%s, max_file_size=%d, timeout=%s)",
        app.state.prediction_client.endpoint,
        settings.max_file_size,
        settings.request_timeout if settings.request_timeout is not None else "httpx default",
    )
    yield

    logger.info("Shutting down TumorLens")
    await app.state.session.aclose()
    await http_client.aclose()
    logger.info("TumorLens shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="TumorLens",
        description="Brain MRI upload UI backed by a remote tumor classification endpoint",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    application.include_router(ui_router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run("tumorlens.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
