"""
Pytest configuration and shared fixtures for ace tests.
"""

import json
from unittest.mock import AsyncMock

import pytest

from ace_skills.settings import Settings

_ENV_VARS = (
    "ACE_API_URL",
    "SKILLS_API_URL",
    "ACE_REQUEST_TIMEOUT",
    "ACE_LOG_DIR",
    "CLAUDE_CONFIG_DIR",
    "CODEX_HOME",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's environment from leaking into tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def home_dir(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def project_dir(tmp_path):
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def settings(tmp_path):
    """Settings with no batch delay and logs under tmp_path."""
    return Settings(search_batch_delay=0.0, log_dir=tmp_path / "logs")


@pytest.fixture
def write_manifest(project_dir):
    """Write a package.json into the project directory."""

    def _write(data):
        path = project_dir / "package.json"
        text = data if isinstance(data, str) else json.dumps(data)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def mock_httpx_client():
    client = AsyncMock()
    client.aclose = AsyncMock()
    return client
