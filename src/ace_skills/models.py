"""
Data models for ace.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CONFIG_VERSION = 1
UNKNOWN_SOURCE = "unknown"


class MatchType(str, Enum):
    """Why a skill was suggested."""

    DECLARED_DEPENDENCY = "declared-dependency"
    RELATED_TO_INSTALLED_SKILL = "related-to-installed-skill"
    FREE_TEXT_SEARCH = "free-text-search"

    @classmethod
    def from_wire(cls, value: str) -> "MatchType":
        """Parse a match type, accepting the primary registry's legacy names."""
        legacy = {
            "package_json": cls.DECLARED_DEPENDENCY,
            "installed_skill": cls.RELATED_TO_INSTALLED_SKILL,
            "search": cls.FREE_TEXT_SEARCH,
        }
        if value in legacy:
            return legacy[value]
        return cls(value)

    @property
    def priority(self) -> int:
        """Sort priority, lower first."""
        return _MATCH_TYPE_PRIORITY[self]


_MATCH_TYPE_PRIORITY: Dict[MatchType, int] = {
    MatchType.DECLARED_DEPENDENCY: 0,
    MatchType.RELATED_TO_INSTALLED_SKILL: 1,
    MatchType.FREE_TEXT_SEARCH: 2,
}


class Scope(str, Enum):
    """Where skills live: per project, per user, or (for scanning) both."""

    PROJECT = "project"
    GLOBAL = "global"
    BOTH = "both"

    @property
    def includes_project(self) -> bool:
        return self in (Scope.PROJECT, Scope.BOTH)

    @property
    def includes_global(self) -> bool:
        return self in (Scope.GLOBAL, Scope.BOTH)


class Provenance(str, Enum):
    """Which registry source(s) contributed to a suggestion result."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    COMBINED = "combined"
    NONE = "none"


class Skill(BaseModel):
    """An installable agent skill as suggested to the user."""

    name: str = Field(description="Unique skill identifier")
    title: str = Field("", description="Display name, defaults to the name")
    description: Optional[str] = Field(None, description="Free-text description")
    source: Optional[str] = Field(
        None, description="Where the content is fetched from (owner/repo, URL or path)"
    )
    installs: int = Field(0, ge=0, description="Popularity count")
    associated_packages: List[str] = Field(
        default_factory=list, description="Dependency names this skill relates to"
    )
    match_type: MatchType = Field(
        MatchType.FREE_TEXT_SEARCH, description="Why this skill was suggested"
    )
    relevance_score: float = Field(
        0.0, exclude=True, description="Derived ranking value, recomputed each run"
    )

    @model_validator(mode="after")
    def _default_title(self) -> "Skill":
        if not self.title:
            self.title = self.name
        return self

    @property
    def dedup_key(self) -> str:
        return self.name.lower()

    def add_package(self, package: str) -> bool:
        """Append *package* unless already present.  Returns ``True`` if added."""
        if package in self.associated_packages:
            return False
        self.associated_packages.append(package)
        return True


class SuggestionResult(BaseModel):
    """Output of one suggestion run."""

    skills: List[Skill] = Field(default_factory=list, description="Ranked, truncated skills")
    total: int = Field(0, ge=0, description="Count before truncation")
    matched_dependencies: List[str] = Field(
        default_factory=list, description="Declared dependencies with at least one match"
    )
    matched_installed_skills: List[str] = Field(
        default_factory=list, description="Installed skills with at least one related match"
    )
    provenance: Provenance = Field(Provenance.NONE, description="Contributing source(s)")


# ─── Registry wire models ─────────────────────────────────────────────────────


class PrimaryLookupResult(BaseModel):
    """Parsed response of the primary structured lookup."""

    skills: List[Skill] = Field(default_factory=list)
    total: int = Field(0, ge=0)
    matched_packages: List[str] = Field(default_factory=list)
    matched_installed_skills: List[str] = Field(default_factory=list)


class DirectoryHit(BaseModel):
    """A keyword-search hit from the secondary skills directory."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Directory identifier")
    name: str = Field(description="Skill name")
    installs: int = Field(0, ge=0)
    top_source: Optional[str] = Field(None, alias="topSource")

    @property
    def source(self) -> str:
        return self.top_source or self.id


class FuzzyMatch(BaseModel):
    """Fuzzy-match resolution of a locally installed skill name."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(description="Registry source of the matched skill")
    skill_id: Optional[str] = Field(None, alias="skillId")
    name: Optional[str] = Field(None)
    installs: int = Field(0, ge=0)
    score: float = Field(0.0, description="Match confidence")


# ─── Agent integrations ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class AgentIntegration:
    """Filesystem conventions of one supported coding agent."""

    id: str
    display_name: str
    project_skills_dir: str
    global_skills_dir: str
    # Paths (relative to home) whose presence means the agent is installed.
    detect_paths: Tuple[str, ...] = ()
    # Paths (relative to the project) that also count as presence.
    project_markers: Tuple[str, ...] = ()
    # Environment variable relocating the agent's home directory; when set,
    # global skills live in ``$VAR/skills``.
    home_env: Optional[str] = None

    def _env_home(self) -> Optional[Path]:
        if not self.home_env:
            return None
        override = os.environ.get(self.home_env, "").strip()
        return Path(override).expanduser() if override else None

    def global_skills_path(self, home: Optional[Path] = None) -> Path:
        """Absolute global skills directory for this agent."""
        env_home = self._env_home()
        if env_home is not None:
            return env_home / "skills"
        return (home or Path.home()) / self.global_skills_dir

    def project_skills_path(self, project_dir: Path) -> Path:
        return Path(project_dir) / self.project_skills_dir

    def detect_installed(self, home: Optional[Path] = None, cwd: Optional[Path] = None) -> bool:
        """Return ``True`` when the agent's own config directory is present."""
        home = home or Path.home()
        cwd = cwd or Path.cwd()
        env_home = self._env_home()
        if env_home is not None and env_home.exists():
            return True
        if any((home / rel).exists() for rel in self.detect_paths):
            return True
        return any((cwd / rel).exists() for rel in self.project_markers)


# ─── Persisted local config ──────────────────────────────────────────────────


class LocalConfig(BaseModel):
    """Per-project state persisted to ``agents.json``."""

    version: int = Field(CONFIG_VERSION, description="Schema version")
    agents: List[str] = Field(description="Selected agent integration ids")
    scope: Scope = Field(Scope.PROJECT, description="Install scope")
    skills: Dict[str, str] = Field(
        default_factory=dict, description="Installed skill name -> source"
    )

    @field_validator("agents")
    @classmethod
    def _known_agents(cls, value: List[str]) -> List[str]:
        from .agents import is_known_agent

        if not value:
            raise ValueError("at least one agent must be selected")
        unknown = [agent_id for agent_id in value if not is_known_agent(agent_id)]
        if unknown:
            raise ValueError(f"unknown agent id(s): {', '.join(unknown)}")
        return list(dict.fromkeys(value))

    @field_validator("scope")
    @classmethod
    def _install_scope(cls, value: Scope) -> Scope:
        if value == Scope.BOTH:
            raise ValueError("scope must be 'project' or 'global'")
        return value

    @field_validator("version")
    @classmethod
    def _supported_version(cls, value: int) -> int:
        if value != CONFIG_VERSION:
            raise ValueError(f"unsupported config version {value}")
        return value


# ─── Installation ────────────────────────────────────────────────────────────


class ErrorCategory(str, Enum):
    """Categories of skill fetch failures."""

    PERMISSION_ERROR = "permission_error"
    NETWORK_ERROR = "network_error"
    SOURCE_NOT_FOUND = "source_not_found"
    FILESYSTEM_ERROR = "filesystem_error"
    UNKNOWN = "unknown"


class InstallationError(BaseModel):
    """Categorized detail of a failed fetch."""

    category: ErrorCategory = Field(description="Error category")
    message: str = Field(description="Error message")
    suggestion: Optional[str] = Field(None, description="Suggested fix for the error")


class InstallStatus(str, Enum):
    INSTALLED = "installed"
    ALREADY_INSTALLED = "already_installed"
    SKIPPED_NO_SOURCE = "skipped_no_source"
    FAILED = "failed"


class InstallOutcome(BaseModel):
    """Result of installing one skill."""

    name: str = Field(description="Skill name")
    source: Optional[str] = Field(None, description="Source used for the fetch")
    status: InstallStatus = Field(description="What happened")
    message: str = Field("", description="Human-readable detail")
    error: Optional[InstallationError] = Field(None, description="Failure detail")
    duration_seconds: float = Field(0.0, description="Time spent on this skill")


class InstallReport(BaseModel):
    """Result of one ``install_skills`` batch."""

    central_dir: str = Field(description="Central skills directory")
    linked_agents: List[str] = Field(
        default_factory=list, description="Agents newly linked to the central directory"
    )
    outcomes: List[InstallOutcome] = Field(default_factory=list)
    session_id: Optional[str] = Field(None, description="Install history session")
    started_at: datetime = Field(default_factory=datetime.now)

    def count(self, status: InstallStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def installed(self) -> List[str]:
        return [o.name for o in self.outcomes if o.status == InstallStatus.INSTALLED]


# ─── Install history ─────────────────────────────────────────────────────────


class InstallSession(BaseModel):
    """One ``install_skills`` run as recorded in the install history."""

    session_id: str = Field(description="Unique session identifier")
    project_dir: str = Field(description="Project the skills were installed for")
    scope: Scope = Field(description="Install scope")
    agents: List[str] = Field(default_factory=list, description="Configured agents")
    started_at: datetime = Field(description="When the session started")
    ended_at: Optional[datetime] = Field(None, description="When the session ended")
    duration_seconds: Optional[float] = Field(None, description="Total session duration")
    system_info: Dict[str, str] = Field(
        default_factory=dict, description="Host details for debugging"
    )
    attempts: List[InstallOutcome] = Field(
        default_factory=list, description="Per-skill outcomes in install order"
    )

    @property
    def success(self) -> bool:
        return all(a.status != InstallStatus.FAILED for a in self.attempts)
