"""
Local project signals.

Reads the dependency names a project declares in ``package.json`` and the
skills already installed for the project's agents.  Both lists feed the
suggestion engine.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from .agents import POPULAR_AGENTS, detect_installed_agents, get_agent
from .models import Scope

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"
DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")
SKILL_FILENAME = "SKILL.md"


class ManifestError(Exception):
    """The dependency manifest exists but cannot be read or parsed."""


# ---------------------------------------------------------------------------
# Declared dependencies
# ---------------------------------------------------------------------------


def read_declared_dependencies(project_dir: Union[str, Path]) -> List[str]:
    """Return dependency names from *project_dir*'s manifest.

    Names from ``dependencies``, ``devDependencies`` and ``peerDependencies``
    are merged in first-seen order, each name once.  A missing manifest
    yields ``[]``; anything else that goes wrong raises :class:`ManifestError`.
    """
    manifest = Path(project_dir) / MANIFEST_FILENAME
    if not manifest.exists():
        return []

    try:
        with open(manifest, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Cannot read {manifest}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in {manifest}: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestError(f"{manifest} must contain a JSON object")

    names: Dict[str, None] = {}
    for section in DEPENDENCY_SECTIONS:
        entries = data.get(section)
        if not isinstance(entries, dict):
            continue
        for name in entries:
            names.setdefault(name, None)

    logger.debug("Declared dependencies in %s: %d", manifest, len(names))
    return list(names)


# ---------------------------------------------------------------------------
# Installed skills
# ---------------------------------------------------------------------------


def _skill_entries(skills_dir: Path) -> List[str]:
    """Names of directories or symlinks directly under *skills_dir*."""
    found: List[str] = []
    for entry in skills_dir.iterdir():
        if entry.name.startswith("."):
            continue
        if entry.is_symlink() or entry.is_dir():
            found.append(entry.name)
    return found


def list_central_skills(central_dir: Union[str, Path]) -> List[str]:
    """Sorted skill names stored in a single skills directory."""
    path = Path(central_dir)
    if not path.is_dir():
        return []
    try:
        return sorted(_skill_entries(path))
    except OSError as exc:
        logger.debug("Cannot list %s: %s", path, exc)
        return []


def _target_agents(agent_ids: Optional[Iterable[str]], home: Optional[Path], cwd: Path) -> List[str]:
    if agent_ids:
        return list(agent_ids)
    detected = detect_installed_agents(home=home, cwd=cwd)
    if detected:
        return detected
    logger.debug("No agents detected, falling back to popular agents")
    return list(POPULAR_AGENTS)


def list_installed_skills(
    project_dir: Union[str, Path],
    agent_ids: Optional[Iterable[str]] = None,
    scope: Union[str, Scope] = Scope.PROJECT,
    home: Optional[Path] = None,
) -> List[str]:
    """Union of installed skill names across agents, sorted.

    Targets the explicit *agent_ids*, else the detected agents, else the
    popular fallback set.  Each agent's project directory is inspected when
    *scope* includes ``project`` and its global directory when it includes
    ``global``.  An agent that cannot be inspected contributes nothing.
    """
    project_dir = Path(project_dir)
    scope = Scope(scope)
    installed = set()

    for agent_id in _target_agents(agent_ids, home, project_dir):
        try:
            integration = get_agent(agent_id)
            directories: List[Path] = []
            if scope.includes_project:
                directories.append(integration.project_skills_path(project_dir))
            if scope.includes_global:
                directories.append(integration.global_skills_path(home))
            for directory in directories:
                if directory.is_dir():
                    installed.update(_skill_entries(directory))
        except (KeyError, OSError) as exc:
            logger.debug("Skipping agent %s: %s", agent_id, exc)

    return sorted(installed)


# ---------------------------------------------------------------------------
# Skill metadata
# ---------------------------------------------------------------------------


def read_skill_metadata(skill_dir: Union[str, Path]) -> Dict[str, Any]:
    """Parse the YAML frontmatter of ``SKILL.md``; ``{}`` when absent or invalid."""
    path = Path(skill_dir) / SKILL_FILENAME
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Could not read %s: %s", path, exc)
        return {}

    if not text.startswith("---"):
        return {}
    parts = text.split("---", 2)
    if len(parts) < 3:
        return {}

    try:
        frontmatter = yaml.safe_load(parts[1])
    except yaml.YAMLError as exc:
        logger.debug("Could not parse frontmatter in %s: %s", path, exc)
        return {}
    return frontmatter if isinstance(frontmatter, dict) else {}
