"""Tests for the agent integration table."""

from pathlib import Path

import pytest

from ace_skills.agents import (
    AGENT_INTEGRATIONS,
    ALL_AGENT_IDS,
    POPULAR_AGENTS,
    agent_skills_dir,
    central_skills_dir,
    detect_installed_agents,
    get_agent,
    is_known_agent,
)
from ace_skills.models import Scope


class TestIntegrationTable:
    """Static table shape."""

    def test_has_all_agents(self):
        assert len(AGENT_INTEGRATIONS) == 33
        assert list(ALL_AGENT_IDS) == list(AGENT_INTEGRATIONS)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            AGENT_INTEGRATIONS["new"] = AGENT_INTEGRATIONS["cursor"]

    def test_entries_are_frozen(self):
        with pytest.raises(AttributeError):
            AGENT_INTEGRATIONS["cursor"].project_skills_dir = "elsewhere"

    def test_popular_agents_are_known(self):
        assert all(is_known_agent(agent_id) for agent_id in POPULAR_AGENTS)

    def test_ids_match_keys(self):
        for agent_id, integration in AGENT_INTEGRATIONS.items():
            assert integration.id == agent_id
            assert integration.display_name

    def test_get_agent_unknown(self):
        with pytest.raises(KeyError):
            get_agent("not-an-agent")

    def test_is_known_agent(self):
        assert is_known_agent("claude-code")
        assert not is_known_agent("vim")


class TestSkillsDirectories:
    """Project and global directory resolution."""

    def test_project_scope(self, tmp_path):
        path = agent_skills_dir("cursor", Scope.PROJECT, tmp_path)
        assert path == tmp_path / ".cursor" / "skills"

    def test_global_scope_uses_home(self, tmp_path, home_dir):
        path = agent_skills_dir("windsurf", "global", tmp_path, home=home_dir)
        assert path == home_dir / ".codeium" / "windsurf" / "skills"

    def test_global_scope_env_override(self, tmp_path, home_dir, monkeypatch):
        monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(tmp_path / "claude-home"))
        path = agent_skills_dir("claude-code", Scope.GLOBAL, tmp_path, home=home_dir)
        assert path == tmp_path / "claude-home" / "skills"

    def test_central_dir_per_scope(self, tmp_path, home_dir):
        assert central_skills_dir("project", tmp_path, home_dir) == tmp_path / ".agents" / "skills"
        assert central_skills_dir("global", tmp_path, home_dir) == home_dir / ".agents" / "skills"


class TestDetection:
    """Installed-agent detection."""

    def test_nothing_detected(self, home_dir, project_dir):
        assert detect_installed_agents(home=home_dir, cwd=project_dir) == []

    def test_detects_home_config_dirs(self, home_dir, project_dir):
        (home_dir / ".cursor").mkdir()
        (home_dir / ".codeium" / "windsurf").mkdir(parents=True)
        detected = detect_installed_agents(home=home_dir, cwd=project_dir)
        assert detected == ["cursor", "windsurf"]

    def test_detects_project_markers(self, home_dir, project_dir):
        (project_dir / ".github").mkdir()
        assert "github-copilot" in detect_installed_agents(home=home_dir, cwd=project_dir)

    def test_detects_env_home(self, home_dir, project_dir, tmp_path, monkeypatch):
        codex_home = tmp_path / "codex"
        codex_home.mkdir()
        monkeypatch.setenv("CODEX_HOME", str(codex_home))
        assert detect_installed_agents(home=home_dir, cwd=project_dir) == ["codex"]

    def test_failing_predicate_counts_as_absent(self, home_dir, project_dir, monkeypatch):
        def boom(self, path=None):
            raise PermissionError("denied")

        (home_dir / ".cursor").mkdir()
        monkeypatch.setattr(Path, "exists", boom)
        assert detect_installed_agents(home=home_dir, cwd=project_dir) == []
