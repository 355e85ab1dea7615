"""Classification result types and the classifier protocol.

Any classifier, heuristic or trained, implements ``ImageClassifier`` so the
result shape and error taxonomy stay stable for callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from daynight.ml.preprocessing import ImageBuffer


class Label(StrEnum):
    DAY = "Day"
    NIGHT = "Night"


@dataclass(frozen=True)
class ClassificationDetails:
    """Display metrics derived from the analysis grid."""

    brightness: int
    warmth: int


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of classifying one image."""

    label: Label
    confidence: int
    details: ClassificationDetails

    def as_dict(self) -> dict[str, object]:
        return {
            "label": str(self.label),
            "confidence": self.confidence,
            "details": {
                "brightness": self.details.brightness,
                "warmth": self.details.warmth,
            },
        }


class ImageClassifier(Protocol):
    """Protocol for day/night classifiers."""

    def classify(self, image: ImageBuffer) -> ClassificationResult:
        """Classify an image as day or night.

        Args:
            image: Decoded RGBA image.

        Returns:
            Label, confidence percentage, and display metrics.

        Raises:
            InvalidDimensions: If the image has a zero or negative dimension.
            DecodeUnavailable: If the image carries no usable pixel data.
        """
        ...
