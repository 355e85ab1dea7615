"""Environment-based configuration for DayNight."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from DAYNIGHT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DAYNIGHT_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # Authentication (None = disabled)
    api_key: str | None = None

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=52_428_800, ge=1)

    # Classifier calibration
    grid_size: int = Field(default=100, ge=1)
    day_threshold: float = Field(default=80.0, ge=0.0, le=255.0)
    confidence_scale: float = Field(default=50.0, gt=0.0)
    ambiguous_confidence_floor: int = Field(default=60, ge=0, le=100)
    ambiguous_confidence_ceiling: int = Field(default=80, ge=0, le=100)

    # Seed for the ambiguous-confidence generator (None = OS entropy)
    confidence_seed: int | None = None

    @model_validator(mode="after")
    def _check_ambiguous_range(self) -> Settings:
        if self.ambiguous_confidence_floor >= self.ambiguous_confidence_ceiling:
            msg = "ambiguous_confidence_floor must be below ambiguous_confidence_ceiling"
            raise ValueError(msg)
        return self


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
