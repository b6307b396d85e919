"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status

from componentid.api.middleware import verify_api_key
from componentid.api.schemas import (
    ClassifyImageResponse,
    ComponentInfo,
    ErrorResponse,
    HealthResponse,
    LabelsResponse,
)
from componentid.errors import InvalidInputError

if TYPE_CHECKING:
    from componentid.config import Settings
    from componentid.ml.inference import InferencePool
    from componentid.ml.pipeline import ClassificationPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_pipeline(request: Request) -> ClassificationPipeline:
    pipeline: ClassificationPipeline = request.app.state.pipeline
    return pipeline


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Identify the component in an image",
)
async def classify_image(request: Request, file: UploadFile) -> ClassifyImageResponse:
    """Classify an uploaded photo and return the top label with its metadata."""
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    pipeline = _get_pipeline(request)

    try:
        contents = await file.read(settings.max_file_size + 1)
    finally:
        await file.close()

    if len(contents) > settings.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File exceeds {settings.max_file_size} bytes",
        )

    try:
        output = await pool.run(pipeline.classify_bytes, contents)
    except InvalidInputError as exc:
        logger.info("Rejected %s: %s", file.filename, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TimeoutError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Classifier busy, try again later",
        ) from exc

    metadata = output.metadata
    return ClassifyImageResponse(
        label=output.label,
        confidence=output.confidence,
        degraded=output.degraded,
        component=ComponentInfo(
            name=metadata.name,
            description=metadata.description,
            specs=list(metadata.specs),
            common_projects=list(metadata.common_projects),
        ),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    pipeline = _get_pipeline(request)
    loaded = not pipeline.is_closed
    return HealthResponse(
        status="ok" if loaded else "unavailable",
        gpu=settings.device == "cuda",
        model_loaded=loaded,
        label_count=len(pipeline.labels),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/labels",
    response_model=LabelsResponse,
    summary="List the labels the model can assign",
)
async def list_labels(request: Request) -> LabelsResponse:
    """Return the model's labels in output index order."""
    pipeline = _get_pipeline(request)
    return LabelsResponse(labels=pipeline.labels)
