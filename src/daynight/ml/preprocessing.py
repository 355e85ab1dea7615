"""Image preprocessing: pixel buffers, decoding, and grid resampling.

Decoding turns raw upload bytes into an RGBA ``ImageBuffer`` via Pillow,
applying EXIF orientation and the configured pixel limit. Resampling maps
a buffer of any size onto the fixed square analysis grid used by the
lighting classifier.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)


class ClassificationError(ValueError):
    """Base class for errors that prevent a classification result."""


class DecodeUnavailable(ClassificationError):
    """The supplied image could not yield pixel data."""


class InvalidDimensions(ClassificationError):
    """Width or height is zero or negative."""


@dataclass(frozen=True)
class ImageBuffer:
    """A decoded image: dimensions plus flat row-major RGBA bytes.

    The buffer is borrowed by consumers and never mutated. Dimensions are
    not checked on construction; ``validate`` does that so callers can
    reject bad input before any work begins.
    """

    width: int
    height: int
    pixels: NDArray[np.uint8]

    @classmethod
    def from_array(cls, array: NDArray[np.uint8]) -> ImageBuffer:
        """Build a buffer from an HxWx3 (RGB) or HxWx4 (RGBA) uint8 array."""
        if array.ndim != 3 or array.shape[2] not in (3, 4):  # noqa: PLR2004
            msg = f"Expected an HxWx3 or HxWx4 array, got shape {array.shape}"
            raise DecodeUnavailable(msg)

        height, width = array.shape[:2]
        if array.shape[2] == 3:  # noqa: PLR2004
            alpha = np.full((height, width, 1), 255, dtype=np.uint8)
            array = np.concatenate([array.astype(np.uint8, copy=False), alpha], axis=2)

        return cls(width=width, height=height, pixels=np.ascontiguousarray(array, dtype=np.uint8).reshape(-1))

    @classmethod
    def from_rgba_bytes(cls, width: int, height: int, data: bytes) -> ImageBuffer:
        """Wrap raw RGBA bytes without copying."""
        return cls(width=width, height=height, pixels=np.frombuffer(data, dtype=np.uint8))

    def validate(self) -> None:
        """Check the buffer is usable.

        Raises:
            InvalidDimensions: If width or height is not positive.
            DecodeUnavailable: If the pixel data does not match the dimensions.
        """
        if self.width <= 0 or self.height <= 0:
            msg = f"Image dimensions must be positive, got {self.width}x{self.height}"
            raise InvalidDimensions(msg)

        expected = self.width * self.height * 4
        if self.pixels is None or self.pixels.size != expected:
            actual = 0 if self.pixels is None else self.pixels.size
            msg = f"Pixel buffer holds {actual} bytes, expected {expected} for {self.width}x{self.height} RGBA"
            raise DecodeUnavailable(msg)

    def as_array(self) -> NDArray[np.uint8]:
        """Return an HxWx4 view of the pixel data."""
        return self.pixels.reshape(self.height, self.width, 4)


def decode_image(image_bytes: bytes, max_pixels: int) -> ImageBuffer:
    """Decode raw image bytes into an RGBA ``ImageBuffer``.

    Args:
        image_bytes: Raw file bytes (any format Pillow can read).
        max_pixels: Upper bound on width * height.

    Returns:
        The decoded image, EXIF orientation applied.

    Raises:
        DecodeUnavailable: If the bytes cannot be decoded, the image is
            empty, or it exceeds ``max_pixels``.
    """
    if not image_bytes:
        msg = "Empty image data"
        raise DecodeUnavailable(msg)

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if width * height > max_pixels:
                msg = f"Image has {width * height} pixels, limit is {max_pixels}"
                raise DecodeUnavailable(msg)
            rgba = ImageOps.exif_transpose(img).convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
        logger.warning("Image decode failed: %s", exc)
        msg = f"Could not decode image: {exc}"
        raise DecodeUnavailable(msg) from exc

    if rgba.width == 0 or rgba.height == 0:
        msg = "Decoded image has no pixels"
        raise DecodeUnavailable(msg)

    return ImageBuffer.from_array(np.asarray(rgba, dtype=np.uint8))


def resample_to_grid(image: ImageBuffer, grid_size: int) -> NDArray[np.uint8]:
    """Area-average ``image`` onto a ``grid_size`` square.

    The box filter averages every source pixel under a grid cell, so fine
    detail smooths into its mean instead of aliasing. The source is
    stretched to fill the grid regardless of aspect ratio. Alpha is dropped
    before resizing; Pillow would otherwise weight colours by it.

    Returns:
        A grid_size x grid_size x 3 RGB uint8 array.
    """
    rgb = Image.fromarray(np.ascontiguousarray(image.as_array()[..., :3]))
    grid = rgb.resize((grid_size, grid_size), Image.Resampling.BOX)
    return np.asarray(grid, dtype=np.uint8)
