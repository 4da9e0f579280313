"""Shared test fixtures."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch, tmp_path):
    """Point every test at its own options file and fresh settings."""
    monkeypatch.setenv("CSP_OPTIONS_FILE", str(tmp_path / "csp_options.yaml"))
    monkeypatch.setenv("CSP_API_KEY", "test-api-key")
    monkeypatch.setenv("CSP_LOG_JSON", "false")
    monkeypatch.setenv("CSP_LOG_LEVEL", "debug")

    # Reset cached singletons
    import csp_manager.config.loader as loader
    import csp_manager.config.policy_service as policy_service
    loader._settings = None
    policy_service._service = None
    yield
    loader._settings = None
    policy_service._service = None


@pytest.fixture
def options_path(tmp_path):
    return tmp_path / "csp_options.yaml"


@pytest.fixture
def client():
    """FastAPI test client; startup seeds the default policies."""
    from csp_manager.main import app
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def api_headers():
    """Headers with valid API key for the settings endpoints."""
    return {"Authorization": "Bearer test-api-key"}
