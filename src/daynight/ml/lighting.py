"""Brightness and colour-temperature heuristic for day/night classification.

Pipeline:
    ImageBuffer -> resample to grid -> accumulate channels -> averages
        -> threshold (label) + distance to threshold (confidence)

Confidence below the ambiguous floor is replaced by a value drawn from
[floor, ceiling); ambiguous results are never reported as low confidence.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from daynight.ml.image_classifier import ClassificationDetails, ClassificationResult, Label
from daynight.ml.preprocessing import resample_to_grid

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from daynight.config import Settings
    from daynight.ml.preprocessing import ImageBuffer

logger = logging.getLogger(__name__)

GRID_SIZE: int = 100
DAY_THRESHOLD: float = 80.0
CONFIDENCE_SCALE: float = 50.0
AMBIGUOUS_CONFIDENCE_FLOOR: int = 60
AMBIGUOUS_CONFIDENCE_CEILING: int = 80

# Rec. 601 luma weights in thousandths: 0.299 R + 0.587 G + 0.114 B
_LUMA_WEIGHTS = np.array([299, 587, 114], dtype=np.int64)
_LUMA_DIVISOR = 1000


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties toward positive infinity."""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class ClassifierConfig:
    """Calibration constants for the lighting heuristic."""

    grid_size: int = GRID_SIZE
    day_threshold: float = DAY_THRESHOLD
    confidence_scale: float = CONFIDENCE_SCALE
    ambiguous_floor: int = AMBIGUOUS_CONFIDENCE_FLOOR
    ambiguous_ceiling: int = AMBIGUOUS_CONFIDENCE_CEILING

    def __post_init__(self) -> None:
        if self.grid_size < 1:
            msg = f"grid_size must be at least 1, got {self.grid_size}"
            raise ValueError(msg)
        if self.confidence_scale <= 0:
            msg = f"confidence_scale must be positive, got {self.confidence_scale}"
            raise ValueError(msg)
        if not 0 <= self.ambiguous_floor < self.ambiguous_ceiling <= 100:  # noqa: PLR2004
            msg = (
                "ambiguous range must satisfy 0 <= floor < ceiling <= 100, "
                f"got [{self.ambiguous_floor}, {self.ambiguous_ceiling})"
            )
            raise ValueError(msg)

    @classmethod
    def from_settings(cls, settings: Settings) -> ClassifierConfig:
        return cls(
            grid_size=settings.grid_size,
            day_threshold=settings.day_threshold,
            confidence_scale=settings.confidence_scale,
            ambiguous_floor=settings.ambiguous_confidence_floor,
            ambiguous_ceiling=settings.ambiguous_confidence_ceiling,
        )


@dataclass(frozen=True)
class ChannelAccumulator:
    """Channel sums over one analysis grid.

    ``total_brightness`` is kept in thousandths of a luminance unit so that
    sums stay exact integers.
    """

    total_brightness: int
    total_red: int
    total_blue: int
    pixel_count: int

    @classmethod
    def from_grid(cls, grid: NDArray[np.uint8]) -> ChannelAccumulator:
        rgb = grid[..., :3].reshape(-1, 3).astype(np.int64)
        return cls(
            total_brightness=int((rgb @ _LUMA_WEIGHTS).sum()),
            total_red=int(rgb[:, 0].sum()),
            total_blue=int(rgb[:, 2].sum()),
            pixel_count=rgb.shape[0],
        )

    @property
    def avg_brightness(self) -> float:
        return self.total_brightness / (self.pixel_count * _LUMA_DIVISOR)

    @property
    def avg_red(self) -> float:
        return self.total_red / self.pixel_count

    @property
    def avg_blue(self) -> float:
        return self.total_blue / self.pixel_count


class LightingClassifier:
    """Classifies an image as Day or Night from mean luminance.

    Args:
        config: Calibration constants. Defaults to the module constants.
        rng: Source of randomness for ambiguous confidence values. Pass a
            seeded generator for reproducible output.
    """

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._config = config or ClassifierConfig()
        self._rng = rng if rng is not None else np.random.default_rng()

    @classmethod
    def from_settings(cls, settings: Settings) -> LightingClassifier:
        return cls(
            config=ClassifierConfig.from_settings(settings),
            rng=np.random.default_rng(settings.confidence_seed),
        )

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    def classify(self, image: ImageBuffer) -> ClassificationResult:
        """Classify ``image`` as Day or Night.

        Raises:
            InvalidDimensions: If width or height is not positive.
            DecodeUnavailable: If the pixel data does not match the dimensions.
        """
        image.validate()

        grid = resample_to_grid(image, self._config.grid_size)
        acc = ChannelAccumulator.from_grid(grid)
        avg_brightness = acc.avg_brightness

        is_day = avg_brightness > self._config.day_threshold
        confidence = self.confidence_for(avg_brightness)

        result = ClassificationResult(
            label=Label.DAY if is_day else Label.NIGHT,
            confidence=confidence,
            details=ClassificationDetails(
                brightness=round_half_up(avg_brightness),
                warmth=round_half_up(acc.avg_red - acc.avg_blue),
            ),
        )
        logger.debug(
            "Classified %sx%s image: label=%s confidence=%s brightness=%.2f",
            image.width,
            image.height,
            result.label,
            result.confidence,
            avg_brightness,
        )
        return result

    def raw_confidence(self, avg_brightness: float) -> float:
        """Distance to the threshold as a percentage, saturating at 100."""
        distance = abs(avg_brightness - self._config.day_threshold)
        return min(distance / self._config.confidence_scale, 1.0) * 100

    def confidence_for(self, avg_brightness: float) -> int:
        raw = self.raw_confidence(avg_brightness)
        if raw < self._config.ambiguous_floor:
            return int(self._rng.integers(self._config.ambiguous_floor, self._config.ambiguous_ceiling))
        return round_half_up(raw)
