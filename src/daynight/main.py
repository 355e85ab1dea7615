"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from daynight.api.routes import router
from daynight.config import get_settings
from daynight.ml.inference import ClassificationPool
from daynight.ml.lighting import LightingClassifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting DayNight (max_concurrent=%s, grid=%sx%s, threshold=%s)",
        settings.max_concurrent,
        settings.grid_size,
        settings.grid_size,
        settings.day_threshold,
    )

    classifier = LightingClassifier.from_settings(settings)
    classification_pool = ClassificationPool(settings, classifier)
    app.state.classifier = classifier
    app.state.classification_pool = classification_pool

    logger.info("DayNight ready")
    yield

    logger.info("Shutting down DayNight")
    classification_pool.shutdown()
    logger.info("DayNight shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="DayNight",
        description="Day/night lighting classifier for still images",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()
