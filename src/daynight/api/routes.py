"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, UploadFile
from fastapi.responses import JSONResponse

from daynight.api.middleware import verify_api_key
from daynight.api.schemas import (
    ClassificationDetailsResponse,
    ClassifierInfoResponse,
    ClassifyImageResponse,
    ErrorResponse,
    HealthResponse,
)
from daynight.ml.inference import ClassifierBusy
from daynight.ml.preprocessing import ClassificationError

if TYPE_CHECKING:
    from daynight.config import Settings
    from daynight.ml.inference import ClassificationPool
    from daynight.ml.lighting import LightingClassifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

# Plain codes: Starlette renamed the 413/422 constants and warns on the old ones.
HTTP_CONTENT_TOO_LARGE = 413
HTTP_UNPROCESSABLE_CONTENT = 422
HTTP_SERVICE_UNAVAILABLE = 503


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_classification_pool(request: Request) -> ClassificationPool:
    pool: ClassificationPool = request.app.state.classification_pool
    return pool


def _get_classifier(request: Request) -> LightingClassifier:
    classifier: LightingClassifier = request.app.state.classifier
    return classifier


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        HTTP_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        HTTP_UNPROCESSABLE_CONTENT: {"model": ErrorResponse},
        HTTP_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify an image as Day or Night",
)
async def classify_image(request: Request, file: UploadFile) -> ClassifyImageResponse | JSONResponse:
    """Classify an uploaded image and return its label, confidence, and metrics."""
    settings = _get_settings(request)
    pool = _get_classification_pool(request)

    data = await file.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        return _error(HTTP_CONTENT_TOO_LARGE, f"File exceeds the {settings.max_file_size} byte limit")

    try:
        result = await pool.classify_upload(data)
    except ClassificationError as exc:
        return _error(HTTP_UNPROCESSABLE_CONTENT, str(exc))
    except ClassifierBusy as exc:
        return _error(HTTP_SERVICE_UNAVAILABLE, str(exc))

    logger.info("Classified %s as %s (%s%%)", file.filename, result.label, result.confidence)
    return ClassifyImageResponse(
        label=result.label.value,
        confidence=result.confidence,
        details=ClassificationDetailsResponse(
            brightness=result.details.brightness,
            warmth=result.details.warmth,
        ),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool = _get_classification_pool(request)
    return HealthResponse(
        status="ok",
        concurrent_requests=pool.running,
        queue_depth=pool.waiting,
    )


@router.get(
    "/classifier",
    response_model=ClassifierInfoResponse,
    summary="Show classifier calibration",
)
async def classifier_info(request: Request) -> ClassifierInfoResponse:
    """Return the calibration constants the classifier is running with."""
    config = _get_classifier(request).config
    return ClassifierInfoResponse(
        grid_size=config.grid_size,
        day_threshold=config.day_threshold,
        confidence_scale=config.confidence_scale,
        ambiguous_confidence_floor=config.ambiguous_floor,
        ambiguous_confidence_ceiling=config.ambiguous_ceiling,
    )
