"""
Tests for shared/api/health.py

Covers 3 endpoints: read_root, get_model_config, database_health.
"""

import pytest
from unittest.mock import MagicMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient

from shared.api.health import router
from database import get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def app_and_client():
    """Build a test app with health router and mocked DB dependency."""
    app = FastAPI()
    app.include_router(router)

    mock_db = MagicMock()

    def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    return app, client, mock_db


# ===========================================================================
# read_root
# ===========================================================================

class TestReadRoot:

    def test_health_check(self, app_and_client):
        _, client, _ = app_and_client
        resp = client.get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["service"] == "LessonForge Pipeline Backend"
        assert data["version"] == "1.0.0"


# ===========================================================================
# get_model_config
# ===========================================================================

class TestGetModelConfig:

    @patch("shared.api.health.get_settings")
    def test_reports_stage_models(self, mock_get_settings, app_and_client):
        _, client, _ = app_and_client

        mock_settings = MagicMock()
        mock_settings.llm_provider = "ollama"
        mock_settings.validation_model = "llama3"
        mock_settings.generation_model = "llama3"
        mock_settings.code_generation_model = "qwen2.5-coder"
        mock_get_settings.return_value = mock_settings

        resp = client.get("/config/models")
        assert resp.status_code == 200
        assert resp.json() == {
            "provider": "ollama",
            "outline_validation": "llama3",
            "blocks_generation": "llama3",
            "code_generation": "qwen2.5-coder",
        }


# ===========================================================================
# database_health
# ===========================================================================

class TestDatabaseHealth:

    @patch("shared.api.health.get_db_manager")
    def test_healthy(self, mock_get_manager, app_and_client):
        _, client, _ = app_and_client
        mock_get_manager.return_value.health_check.return_value = True

        resp = client.get("/health/db")
        assert resp.json() == {"status": "ok", "database": "connected"}

    @patch("shared.api.health.get_db_manager")
    def test_unhealthy(self, mock_get_manager, app_and_client):
        _, client, _ = app_and_client
        mock_get_manager.return_value.health_check.return_value = False

        resp = client.get("/health/db")
        assert resp.json() == {"status": "error", "database": "connection_failed"}

    @patch("shared.api.health.get_db_manager")
    def test_exception(self, mock_get_manager, app_and_client):
        _, client, _ = app_and_client
        mock_get_manager.side_effect = RuntimeError("no engine")

        resp = client.get("/health/db")
        assert resp.json() == {"status": "error", "database": "error: no engine"}
