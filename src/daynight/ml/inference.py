"""Upload classification off the event loop.

An upload waits up to ``SLOT_WAIT_SECONDS`` for one of ``max_concurrent``
slots, then is decoded and classified on a worker thread. Counters are only
touched from the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from daynight.ml.preprocessing import decode_image

if TYPE_CHECKING:
    from daynight.config import Settings
    from daynight.ml.image_classifier import ClassificationResult, ImageClassifier

logger = logging.getLogger(__name__)

SLOT_WAIT_SECONDS: float = 5.0


class ClassifierBusy(RuntimeError):
    """No classification slot freed up in time."""


class ClassificationPool:
    """Decodes and classifies uploaded images on a bounded worker pool."""

    def __init__(self, settings: Settings, classifier: ImageClassifier) -> None:
        self._classifier = classifier
        self._max_pixels = settings.max_image_pixels
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._workers = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="daynight-classify",
        )
        self._running = 0
        self._waiting = 0

    @property
    def classifier(self) -> ImageClassifier:
        return self._classifier

    @property
    def running(self) -> int:
        """Uploads currently being decoded or classified."""
        return self._running

    @property
    def waiting(self) -> int:
        """Uploads queued for a slot."""
        return self._waiting

    async def classify_upload(self, data: bytes) -> ClassificationResult:
        """Decode ``data`` and classify it on a worker thread.

        Raises:
            ClassifierBusy: If no slot frees up within ``SLOT_WAIT_SECONDS``.
            DecodeUnavailable: If the bytes are not a usable image.
            InvalidDimensions: If the decoded image has no extent.
        """
        self._waiting += 1
        try:
            async with asyncio.timeout(SLOT_WAIT_SECONDS):
                await self._slots.acquire()
        except TimeoutError as exc:
            logger.warning("No classification slot within %ss (%s waiting)", SLOT_WAIT_SECONDS, self._waiting)
            msg = "Classifier busy, retry later"
            raise ClassifierBusy(msg) from exc
        finally:
            self._waiting -= 1

        self._running += 1
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._workers, self._decode_and_classify, data)
        finally:
            self._running -= 1
            self._slots.release()

    def _decode_and_classify(self, data: bytes) -> ClassificationResult:
        started = time.perf_counter()
        image = decode_image(data, self._max_pixels)
        decoded = time.perf_counter()
        result = self._classifier.classify(image)
        logger.debug(
            "Upload %sx%s: decode %.1fms, classify %.1fms",
            image.width,
            image.height,
            (decoded - started) * 1000,
            (time.perf_counter() - decoded) * 1000,
        )
        return result

    def shutdown(self) -> None:
        """Wait for in-flight uploads and stop the workers."""
        self._workers.shutdown(wait=True)
