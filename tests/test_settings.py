"""Tests for settings resolution."""

from pathlib import Path

from ace_skills.settings import (
    DEFAULT_API_BASE_URL,
    DEFAULT_CONFIG_TOML,
    DEFAULT_SKILLS_API_URL,
    load_settings,
)


class TestLoadSettings:
    """Config file plus environment overrides."""

    def test_defaults_without_file(self, tmp_path):
        settings = load_settings(tmp_path / "missing.toml")
        assert settings.api_base_url == DEFAULT_API_BASE_URL
        assert settings.skills_api_url == DEFAULT_SKILLS_API_URL
        assert settings.request_timeout == 10.0
        assert settings.per_package_limit == 5
        assert settings.sibling_limit == 3
        assert settings.search_batch_size == 5
        assert settings.search_batch_delay == 0.1
        assert settings.exact_match_threshold == 1000
        assert settings.default_limit == 10
        assert settings._config_file == ""

    def test_default_template_parses(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(DEFAULT_CONFIG_TOML)
        settings = load_settings(path)
        assert settings._config_file == str(path)
        assert settings.api_base_url == DEFAULT_API_BASE_URL
        assert settings.log_dir == Path("~/.ace/logs").expanduser()

    def test_file_values(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[registry]\napi_base_url = "https://api.example/"\ntimeout = 3\n'
            "[suggest]\nper_package_limit = 2\nsearch_batch_delay = 0\n"
            '[logging]\ndir = "/tmp/ace-logs"\n'
        )
        settings = load_settings(path)
        assert settings.api_base_url == "https://api.example"
        assert settings.request_timeout == 3.0
        assert settings.per_package_limit == 2
        assert settings.search_batch_delay == 0.0
        assert settings.log_dir == Path("/tmp/ace-logs")

    def test_invalid_values_keep_defaults(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('[suggest]\nsibling_limit = "many"\nper_package_limit = -1\n')
        settings = load_settings(path)
        assert settings.sibling_limit == 3
        assert settings.per_package_limit == 5

    def test_malformed_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("this is = = not toml")
        settings = load_settings(path)
        assert settings.api_base_url == DEFAULT_API_BASE_URL
        assert settings._config_file == ""

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text('[registry]\napi_base_url = "https://file.example"\n')
        monkeypatch.setenv("ACE_API_URL", "https://env.example/")
        monkeypatch.setenv("SKILLS_API_URL", "https://skills.example")
        monkeypatch.setenv("ACE_REQUEST_TIMEOUT", "2.5")
        monkeypatch.setenv("ACE_LOG_DIR", str(tmp_path / "logs"))

        settings = load_settings(path)
        assert settings.api_base_url == "https://env.example"
        assert settings.skills_api_url == "https://skills.example"
        assert settings.request_timeout == 2.5
        assert settings.log_dir == tmp_path / "logs"

    def test_invalid_env_timeout_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ACE_REQUEST_TIMEOUT", "soon")
        assert load_settings(tmp_path / "missing.toml").request_timeout == 10.0
