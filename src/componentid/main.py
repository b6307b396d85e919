"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from componentid.api.routes import router
from componentid.config import get_settings
from componentid.ml.inference import InferencePool
from componentid.ml.pipeline import ClassificationPipeline

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load the model on startup, release it on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting ComponentID (device=%s, max_concurrent=%s, model=%s, assets=%s)",
        settings.device,
        settings.max_concurrent,
        settings.model_file,
        settings.hub_repo_id or settings.assets_dir,
    )

    # Model load errors propagate: the service does not start without a model.
    pipeline = ClassificationPipeline.from_settings(settings)
    app.state.pipeline = pipeline
    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    logger.info("ComponentID ready (%d labels)", len(pipeline.labels))
    try:
        yield
    finally:
        logger.info("Shutting down ComponentID")
        inference_pool.shutdown()
        pipeline.close()
        logger.info("ComponentID shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="ComponentID",
        description="Identify electronic components from photos and describe them",
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
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("componentid.main:app", host=settings.host, port=settings.port)
