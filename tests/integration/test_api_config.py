"""Integration tests for config API endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from agentkb.api.deps import get_config_service
from agentkb.api.main import create_app
from agentkb.app_utils.config_schema import API_TOKEN_ENV, API_URL_ENV
from agentkb.services import ConfigService


@pytest.fixture
def config_service(tmp_path, monkeypatch):
    monkeypatch.delenv(API_URL_ENV, raising=False)
    monkeypatch.delenv(API_TOKEN_ENV, raising=False)
    return ConfigService(config_file=tmp_path / "config.yaml")


@pytest.fixture
def app(config_service):
    """Create test application backed by a temp config file."""
    app = create_app()
    app.dependency_overrides[get_config_service] = lambda: config_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


class TestConfigAPI:
    """Test config endpoints."""

    @pytest.mark.asyncio
    async def test_get_config(self, client):
        """Test getting current configuration."""
        response = await client.get("/api/config")
        assert response.status_code == 200
        data = response.json()

        assert set(data) == {"api", "sync", "training", "notifications"}
        assert data["api"]["has_token"] is False
        assert data["sync"]["debounce_seconds"] == 0.5

    @pytest.mark.asyncio
    async def test_token_is_never_returned(self, client, monkeypatch):
        monkeypatch.setenv(API_TOKEN_ENV, "very-secret")
        response = await client.get("/api/config")

        assert response.json()["api"]["has_token"] is True
        assert "very-secret" not in response.text

    @pytest.mark.asyncio
    async def test_get_default_config(self, client):
        """Test getting default configuration."""
        response = await client.get("/api/config/defaults")
        assert response.status_code == 200
        data = response.json()

        assert data["api"]["base_url"] == "http://localhost:8000/api/"
        assert data["training"]["poll_interval"] == 5.0
        assert data["training"]["max_polls"] == 720

    @pytest.mark.asyncio
    async def test_update_config(self, client, config_service):
        """Test updating configuration."""
        response = await client.patch(
            "/api/config",
            json={
                "updates": {
                    "sync_debounce_seconds": 1.0,
                    "training_progress_step": 5,
                }
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["sync"]["debounce_seconds"] == 1.0
        assert data["training"]["progress_step"] == 5

        # Persisted for the next load
        assert config_service.load().training.progress_step == 5
