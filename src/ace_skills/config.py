"""
Per-project ace configuration.

Stored as ``agents.json`` at the project root::

    {
      "version": 1,
      "agents": ["cursor", "claude-code"],
      "scope": "project",
      "skills": {"react-hooks-helper": "acme/skills"}
    }

Earlier releases wrote unversioned documents (and used ``.ace.json``);
those are upgraded to the current schema when loaded.  Writes are plain
read-modify-write with no locking.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from .agents import central_skills_dir
from .models import CONFIG_VERSION, UNKNOWN_SOURCE, LocalConfig
from .signals import list_central_skills

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "agents.json"
LEGACY_CONFIG_FILENAME = ".ace.json"


class ConfigError(Exception):
    """The persisted config cannot be parsed or fails validation."""


def get_config_path(project_dir: Union[str, Path]) -> Path:
    return Path(project_dir) / CONFIG_FILENAME


def _upgrade(data: Dict[str, Any], path: Path) -> Dict[str, Any]:
    """Bring an older document shape up to the current version."""
    if "version" in data:
        return data
    logger.info("Upgrading unversioned config %s to version %d", path, CONFIG_VERSION)
    upgraded = dict(data)
    upgraded["version"] = CONFIG_VERSION
    upgraded.setdefault("skills", {})
    return upgraded


def load_config(project_dir: Union[str, Path]) -> Optional[LocalConfig]:
    """Load the project config, or ``None`` when none exists.

    Raises :class:`ConfigError` for unreadable JSON, unknown versions or
    invalid fields.
    """
    path = get_config_path(project_dir)
    if not path.exists():
        legacy = Path(project_dir) / LEGACY_CONFIG_FILENAME
        if not legacy.exists():
            return None
        logger.info("Reading legacy config %s", legacy)
        path = legacy

    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {path} contains invalid JSON: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    try:
        return LocalConfig.model_validate(_upgrade(data, path))
    except ValidationError as exc:
        raise ConfigError(f"Config file {path} has invalid structure: {exc}") from exc


def save_config(project_dir: Union[str, Path], config: LocalConfig) -> Path:
    """Write *config* as pretty JSON; returns the path written."""
    path = get_config_path(project_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config.model_dump(mode="json"), fh, indent=2, ensure_ascii=False)
        fh.write("\n")
    logger.debug("Saved config to %s", path)
    return path


def record_skill(
    project_dir: Union[str, Path], config: LocalConfig, name: str, source: str
) -> LocalConfig:
    """Record ``name -> source`` in *config* and persist it."""
    config.skills[name] = source or UNKNOWN_SOURCE
    save_config(project_dir, config)
    return config


def sync_installed_skills(
    project_dir: Union[str, Path], config: LocalConfig, home: Optional[Path] = None
) -> LocalConfig:
    """Reconcile ``config.skills`` with the central skills directory.

    Skills on disk but not recorded are added with an ``"unknown"`` source;
    recorded skills no longer on disk are dropped.  Saves only on change.
    """
    central = central_skills_dir(config.scope, Path(project_dir), home)
    on_disk = list_central_skills(central)

    added = [name for name in on_disk if name not in config.skills]
    removed = [name for name in config.skills if name not in on_disk]
    if not added and not removed:
        return config

    for name in added:
        config.skills[name] = UNKNOWN_SOURCE
    for name in removed:
        del config.skills[name]

    logger.info("Synced skills: %d added, %d removed", len(added), len(removed))
    save_config(project_dir, config)
    return config


def reset_config(project_dir: Union[str, Path]) -> bool:
    """Delete the config (and any legacy file).  ``False`` if none existed."""
    removed = False
    for filename in (CONFIG_FILENAME, LEGACY_CONFIG_FILENAME):
        path = Path(project_dir) / filename
        if path.exists():
            path.unlink()
            logger.info("Removed %s", path)
            removed = True
    return removed
