"""
Central settings for ace.

Reads configuration from ``~/.config/ace/config.toml`` (POSIX) or
``%APPDATA%/ace/config.toml`` (Windows).  Environment variables override
config-file values.

The resolved :class:`Settings` value is passed explicitly to the registry
clients, the suggestion engine and the installer::

    settings = load_settings()
    engine = SuggestionEngine(settings)
"""

import logging
import os
import platform
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://ace-api.pranshuj73.workers.dev"
DEFAULT_SKILLS_API_URL = "https://skills.sh"


def _default_config_dir() -> Path:
    """Return the platform-appropriate config directory."""
    if platform.system() == "Windows":
        appdata = os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming"))
        return Path(appdata) / "ace"
    return Path.home() / ".config" / "ace"


def _default_config_path() -> Path:
    return _default_config_dir() / "config.toml"


def _default_log_dir() -> Path:
    return Path.home() / ".ace" / "logs"


@dataclass
class Settings:
    """Resolved ace settings (config file + env var overrides)."""

    # [registry]
    api_base_url: str = DEFAULT_API_BASE_URL
    skills_api_url: str = DEFAULT_SKILLS_API_URL
    request_timeout: float = 10.0

    # [suggest]
    default_limit: int = 10
    per_package_limit: int = 5
    sibling_limit: int = 3
    search_batch_size: int = 5
    search_batch_delay: float = 0.1
    exact_match_threshold: float = 1000.0

    # [logging]
    log_dir: Path = field(default_factory=_default_log_dir)

    # Path to the config file that was loaded (empty string if none)
    _config_file: str = ""


def _coerce(value: Any, kind: type, key: str, fallback: Any) -> Any:
    """Convert a TOML value to *kind*, keeping *fallback* when it does not fit."""
    if value is None:
        return fallback
    try:
        converted = kind(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid value for %s: %r", key, value)
        return fallback
    if kind in (int, float) and converted < 0:
        logger.warning("Ignoring negative value for %s: %r", key, value)
        return fallback
    return converted


def _apply_file(settings: Settings, data: Dict[str, Any]) -> None:
    registry = data.get("registry", {})
    settings.api_base_url = str(registry.get("api_base_url", settings.api_base_url)).rstrip("/")
    settings.skills_api_url = str(
        registry.get("skills_api_url", settings.skills_api_url)
    ).rstrip("/")
    settings.request_timeout = _coerce(
        registry.get("timeout"), float, "registry.timeout", settings.request_timeout
    )

    suggest = data.get("suggest", {})
    for key, kind in (
        ("default_limit", int),
        ("per_package_limit", int),
        ("sibling_limit", int),
        ("search_batch_size", int),
        ("search_batch_delay", float),
        ("exact_match_threshold", float),
    ):
        current = getattr(settings, key)
        setattr(settings, key, _coerce(suggest.get(key), kind, f"suggest.{key}", current))

    log_section = data.get("logging", {})
    log_dir = log_section.get("dir")
    if isinstance(log_dir, str) and log_dir.strip():
        settings.log_dir = Path(log_dir.strip()).expanduser()


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from config file, then apply env var overrides."""
    settings = Settings()
    path = config_path or _default_config_path()

    # --- Read config file ---
    if path.is_file():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            _apply_file(settings, data)
            settings._config_file = str(path)
            logger.debug("Loaded settings from %s", path)
        except (tomllib.TOMLDecodeError, OSError, AttributeError):
            logger.warning("Failed to parse config file %s", path, exc_info=True)

    # --- Env var overrides (take priority over config file) ---
    env_api = os.environ.get("ACE_API_URL", "").strip()
    if env_api:
        settings.api_base_url = env_api.rstrip("/")

    env_skills = os.environ.get("SKILLS_API_URL", "").strip()
    if env_skills:
        settings.skills_api_url = env_skills.rstrip("/")

    env_timeout = os.environ.get("ACE_REQUEST_TIMEOUT", "").strip()
    if env_timeout:
        settings.request_timeout = _coerce(
            env_timeout, float, "ACE_REQUEST_TIMEOUT", settings.request_timeout
        )

    env_log_dir = os.environ.get("ACE_LOG_DIR", "").strip()
    if env_log_dir:
        settings.log_dir = Path(env_log_dir).expanduser()

    return settings


# ---------------------------------------------------------------------------
# Default config template
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_TOML = """\
# ace configuration

[registry]
# Structured suggestion API
api_base_url = "https://ace-api.pranshuj73.workers.dev"
# Keyword / fuzzy-match skills directory
skills_api_url = "https://skills.sh"
timeout = 10.0

[suggest]
default_limit = 10
per_package_limit = 5
sibling_limit = 3
search_batch_size = 5
search_batch_delay = 0.1
exact_match_threshold = 1000

[logging]
# Install history (sessions + attempts log)
dir = "~/.ace/logs"
"""
