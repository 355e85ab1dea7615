"""Pydantic response schemas for the DayNight API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ClassificationDetailsResponse(BaseModel):
    """Display metrics for a classified image."""

    brightness: int = Field(ge=0, le=255, description="Mean luminance of the analysis grid, rounded")
    warmth: int = Field(description="Mean red minus mean blue, rounded; positive is warmer")


class ClassifyImageResponse(BaseModel):
    """Response for the image classification endpoint."""

    label: Literal["Day", "Night"]
    confidence: int = Field(ge=0, le=100, description="Confidence percentage")
    details: ClassificationDetailsResponse


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    concurrent_requests: int
    queue_depth: int


class ClassifierInfoResponse(BaseModel):
    """Calibration constants of the active classifier."""

    grid_size: int = Field(description="Side length of the square analysis grid")
    day_threshold: float = Field(description="Mean luminance above which an image is Day")
    confidence_scale: float = Field(description="Luminance distance from the threshold at which confidence saturates")
    ambiguous_confidence_floor: int
    ambiguous_confidence_ceiling: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
