"""Tests for the ComponentID HTTP API."""

from __future__ import annotations

import asyncio
import io
import os
from typing import TYPE_CHECKING
from unittest.mock import patch

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

import httpx
import pytest
from conftest import INPUT_SIZE, LABELS
from fastapi import FastAPI, status
from PIL import Image

from componentid.config import get_settings
from componentid.main import create_app, lifespan
from componentid.ml.inference import InferencePool
from componentid.ml.pipeline import ClassificationPipeline


def _png(color: tuple[int, int, int], size: tuple[int, int] = (32, 24)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format="PNG")
    return buffer.getvalue()


def _env(assets_dir: Path, **overrides: str) -> dict[str, str]:
    return {
        "COMPONENTID_ASSETS_DIR": str(assets_dir),
        "COMPONENTID_INPUT_SIZE": str(INPUT_SIZE),
        **overrides,
    }


def _init_app_state(app: FastAPI, assets_dir: Path, **env_overrides: str) -> None:
    """Manually initialize app state (ASGITransport does not trigger lifespan)."""
    with patch.dict(os.environ, _env(assets_dir, **env_overrides)):
        settings = get_settings()
    app.state.settings = settings
    app.state.pipeline = ClassificationPipeline.from_settings(settings)
    app.state.inference_pool = InferencePool(settings)


async def _make_client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac
    pool: InferencePool = app.state.inference_pool
    pool.shutdown()
    pipeline: ClassificationPipeline = app.state.pipeline
    pipeline.close()


def _app_with(assets_dir: Path, **env_overrides: str) -> FastAPI:
    application = create_app()
    _init_app_state(application, assets_dir, **env_overrides)
    return application


@pytest.fixture()
def app(assets_dir: Path) -> FastAPI:
    """Create a fresh app instance with default settings."""
    return _app_with(assets_dir)


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
        assert data["gpu"] is False
        assert data["model_loaded"] is True
        assert data["label_count"] == len(LABELS)
        assert data["concurrent_requests"] == 0
        assert data["queue_depth"] == 0

    async def test_health_reports_closed_pipeline(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        app.state.pipeline.close()
        data = (await client.get("/api/v1/health")).json()
        assert data["status"] == "unavailable"
        assert data["model_loaded"] is False


class TestLabelsEndpoint:
    async def test_labels_in_model_order(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/labels")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"labels": LABELS}


class TestClassifyImageEndpoint:
    async def test_classifies_upload(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/classify-image",
            files={"file": ("red.png", io.BytesIO(_png((255, 0, 0))), "image/png")},
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["label"] == "Red"
        assert data["confidence"] == pytest.approx(1.0)
        assert data["degraded"] is False
        assert data["component"] == {
            "name": "Red",
            "description": "Red LED, 5mm through-hole.",
            "specs": ["Forward voltage: 2.0V", "Max current: 20mA"],
            "common_projects": ["Status indicator", "Blink sketch"],
        }

    async def test_unknown_metadata_marks_degraded(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/classify-image",
            files={"file": ("blue.png", io.BytesIO(_png((0, 0, 255))), "image/png")},
        )
        data = response.json()
        assert data["label"] == "Blue"
        assert data["degraded"] is True
        assert data["component"]["description"] == "Information unavailable"

    async def test_undecodable_upload_returns_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/classify-image",
            files={"file": ("test.jpg", io.BytesIO(b"fake image data"), "image/jpeg")},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "decode" in response.json()["detail"].lower()

    async def test_empty_upload_returns_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/classify-image",
            files={"file": ("empty.png", io.BytesIO(b""), "image/png")},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_oversized_upload_returns_413(self, assets_dir: Path) -> None:
        app = _app_with(assets_dir, COMPONENTID_MAX_FILE_SIZE="16")
        async for ac in _make_client(app):
            response = await ac.post(
                "/api/v1/classify-image",
                files={"file": ("red.png", io.BytesIO(_png((255, 0, 0))), "image/png")},
            )
            assert response.status_code == status.HTTP_413_CONTENT_TOO_LARGE

    async def test_busy_pool_returns_503(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        async def _busy(*_args: object) -> None:
            raise asyncio.TimeoutError

        with patch.object(app.state.inference_pool, "run", _busy):
            response = await client.post(
                "/api/v1/classify-image",
                files={"file": ("red.png", io.BytesIO(_png((255, 0, 0))), "image/png")},
            )
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


class TestLifespan:
    async def test_lifespan_loads_and_releases_pipeline(self, assets_dir: Path) -> None:
        app = create_app()
        with patch.dict(os.environ, _env(assets_dir)):
            async with lifespan(app):
                pipeline: ClassificationPipeline = app.state.pipeline
                assert pipeline.labels == LABELS
        assert pipeline.is_closed is True

    async def test_lifespan_fails_without_model(self, tmp_path: Path) -> None:
        app = create_app()
        with patch.dict(os.environ, _env(tmp_path / "missing")), pytest.raises(Exception, match="labels.txt"):
            async with lifespan(app):
                pass


class TestAuthentication:
    async def test_no_auth_required_by_default(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/health")
        assert response.status_code == status.HTTP_200_OK

    async def test_auth_required_when_api_key_set(self, assets_dir: Path) -> None:
        app = _app_with(assets_dir, COMPONENTID_API_KEY="test-secret-key")
        async for ac in _make_client(app):
            response = await ac.get("/api/v1/health")
            assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_auth_passes_with_correct_key(self, assets_dir: Path) -> None:
        app = _app_with(assets_dir, COMPONENTID_API_KEY="test-secret-key")
        async for ac in _make_client(app):
            response = await ac.get(
                "/api/v1/health",
                headers={"Authorization": "Bearer test-secret-key"},
            )
            assert response.status_code == status.HTTP_200_OK

    async def test_auth_fails_with_wrong_key(self, assets_dir: Path) -> None:
        app = _app_with(assets_dir, COMPONENTID_API_KEY="test-secret-key")
        async for ac in _make_client(app):
            response = await ac.post(
                "/api/v1/classify-image",
                headers={"Authorization": "Bearer wrong-key"},
                files={"file": ("red.png", io.BytesIO(_png((255, 0, 0))), "image/png")},
            )
            assert response.status_code == status.HTTP_401_UNAUTHORIZED
