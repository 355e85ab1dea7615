"""Tests for the DayNight HTTP API."""

from __future__ import annotations

import importlib
import io
import os
import warnings
from typing import TYPE_CHECKING
from unittest.mock import patch

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import httpx
import pytest
from fastapi import FastAPI, status
from PIL import Image

from daynight.api import routes
from daynight.config import get_settings
from daynight.main import create_app
from daynight.ml.inference import ClassificationPool
from daynight.ml.lighting import LightingClassifier


def _init_app_state(app: FastAPI, **env_overrides: str) -> None:
    """Manually initialize app state (ASGITransport does not trigger lifespan)."""
    with patch.dict(os.environ, env_overrides):
        settings = get_settings()
    app.state.settings = settings
    app.state.classifier = LightingClassifier.from_settings(settings)
    app.state.classification_pool = ClassificationPool(settings, app.state.classifier)


async def _make_client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac
    pool: ClassificationPool = app.state.classification_pool
    pool.shutdown()


def _png(color: tuple[int, int, int], size: tuple[int, int] = (64, 48)) -> io.BytesIO:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    buf.seek(0)
    return buf


@pytest.fixture()
def app() -> FastAPI:
    """Create a fresh app instance with default settings."""
    application = create_app()
    _init_app_state(application, DAYNIGHT_CONFIDENCE_SEED="0")
    return application


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client for testing the app."""
    async for ac in _make_client(app):
        yield ac


class TestHealthEndpoint:
    async def test_health_returns_ok(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/health")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "ok"
        assert data["concurrent_requests"] == 0
        assert data["queue_depth"] == 0


class TestClassifyImageEndpoint:
    async def test_white_image_is_day(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/classify-image",
            files={"file": ("noon.png", _png((255, 255, 255)), "image/png")},
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "label": "Day",
            "confidence": 100,
            "details": {"brightness": 255, "warmth": 0},
        }

    async def test_black_image_is_night(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/classify-image",
            files={"file": ("midnight.png", _png((0, 0, 0)), "image/png")},
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "label": "Night",
            "confidence": 100,
            "details": {"brightness": 0, "warmth": 0},
        }

    async def test_ambiguous_image_confidence_floor(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/classify-image",
            files={"file": ("dusk.png", _png((80, 80, 80)), "image/png")},
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["label"] == "Night"
        assert 60 <= data["confidence"] < 80

    async def test_warm_image_has_positive_warmth(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/classify-image",
            files={"file": ("sunset.png", _png((250, 120, 30)), "image/png")},
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["details"]["warmth"] == 220

    async def test_undecodable_upload_returns_422(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/classify-image",
            files={"file": ("test.jpg", io.BytesIO(b"fake image data"), "image/jpeg")},
        )
        assert response.status_code == 422
        assert "decode" in response.json()["detail"].lower()

    async def test_oversized_upload_returns_413(self) -> None:
        app = create_app()
        _init_app_state(app, DAYNIGHT_MAX_FILE_SIZE="16")
        async for ac in _make_client(app):
            response = await ac.post(
                "/api/v1/classify-image",
                files={"file": ("big.png", _png((10, 10, 10)), "image/png")},
            )
            assert response.status_code == 413

    async def test_too_many_pixels_returns_422(self) -> None:
        app = create_app()
        _init_app_state(app, DAYNIGHT_MAX_IMAGE_PIXELS="100")
        async for ac in _make_client(app):
            response = await ac.post(
                "/api/v1/classify-image",
                files={"file": ("big.png", _png((10, 10, 10)), "image/png")},
            )
            assert response.status_code == 422

    async def test_busy_pool_returns_503(self) -> None:
        app = create_app()
        _init_app_state(app, DAYNIGHT_MAX_CONCURRENT="1")
        pool: ClassificationPool = app.state.classification_pool
        async for ac in _make_client(app):
            # hold the only slot so the upload times out waiting
            await pool._slots.acquire()
            try:
                with patch("daynight.ml.inference.SLOT_WAIT_SECONDS", 0.01):
                    response = await ac.post(
                        "/api/v1/classify-image",
                        files={"file": ("noon.png", _png((255, 255, 255)), "image/png")},
                    )
            finally:
                pool._slots.release()
            assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
            assert "busy" in response.json()["detail"].lower()


class TestClassifierEndpoint:
    async def test_default_calibration(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/classifier")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "grid_size": 100,
            "day_threshold": 80.0,
            "confidence_scale": 50.0,
            "ambiguous_confidence_floor": 60,
            "ambiguous_confidence_ceiling": 80,
        }

    async def test_threshold_override_from_env(self) -> None:
        app = create_app()
        _init_app_state(app, DAYNIGHT_DAY_THRESHOLD="120", DAYNIGHT_GRID_SIZE="50")
        async for ac in _make_client(app):
            response = await ac.get("/api/v1/classifier")
            data = response.json()
            assert data["day_threshold"] == 120.0
            assert data["grid_size"] == 50

            response = await ac.post(
                "/api/v1/classify-image",
                files={"file": ("overcast.png", _png((110, 110, 110)), "image/png")},
            )
            assert response.json()["label"] == "Night"


class TestAuthentication:
    async def test_no_auth_required_by_default(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/health")
        assert response.status_code == status.HTTP_200_OK

    async def test_auth_required_when_api_key_set(self) -> None:
        app = create_app()
        _init_app_state(app, DAYNIGHT_API_KEY="test-secret-key")
        async for ac in _make_client(app):
            response = await ac.get("/api/v1/health")
            assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_auth_passes_with_correct_key(self) -> None:
        app = create_app()
        _init_app_state(app, DAYNIGHT_API_KEY="test-secret-key")
        async for ac in _make_client(app):
            response = await ac.post(
                "/api/v1/classify-image",
                files={"file": ("noon.png", _png((255, 255, 255)), "image/png")},
                headers={"Authorization": "Bearer test-secret-key"},
            )
            assert response.status_code == status.HTTP_200_OK

    async def test_auth_fails_with_wrong_key(self) -> None:
        app = create_app()
        _init_app_state(app, DAYNIGHT_API_KEY="test-secret-key")
        async for ac in _make_client(app):
            response = await ac.get(
                "/api/v1/classifier",
                headers={"Authorization": "Bearer wrong-key"},
            )
            assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestCors:
    async def test_any_origin_allowed_without_credentials(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/health", headers={"Origin": "http://example.com"})
        assert response.status_code == status.HTTP_200_OK
        assert response.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-credentials" not in response.headers

    async def test_preflight_for_upload(self, client: httpx.AsyncClient) -> None:
        response = await client.options(
            "/api/v1/classify-image",
            headers={
                "Origin": "http://example.com",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == status.HTTP_200_OK
        assert "POST" in response.headers["access-control-allow-methods"]
        assert "access-control-allow-credentials" not in response.headers


class TestRoutesModule:
    def test_import_emits_no_deprecation_warnings(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            importlib.reload(routes)

    def test_error_responses_documented(self, app: FastAPI) -> None:
        responses = app.openapi()["paths"]["/api/v1/classify-image"]["post"]["responses"]
        assert {"413", "422", "503"} <= set(responses)
