"""
Skill installation.

Skills are stored once per scope in a central ``.agents/skills`` directory.
Every configured agent's own skills directory becomes a relative symlink to
it, so all agents see the same set without duplicated content.

Content is fetched by a *materializer*: any object with a
``materialize(source, target_dir)`` method that places the skill at
``target_dir`` or raises :class:`FetchError`.  :class:`GitMaterializer`
copies local directories and shallow-clones everything else.
"""

import logging
import os
import re
import shutil
import time
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .agents import agent_skills_dir, central_skills_dir, get_agent
from .config import record_skill
from .install_log import InstallLogManager, categorize_error
from .models import (
    ErrorCategory,
    InstallationError,
    InstallOutcome,
    InstallReport,
    InstallStatus,
    LocalConfig,
    Skill,
    UNKNOWN_SOURCE,
)
from .settings import Settings
from .signals import read_skill_metadata

logger = logging.getLogger(__name__)

_GITHUB_URL = "https://github.com/{}"
_OWNER_REPO = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_TEMP_PREFIX = ".temp-"


class FetchError(Exception):
    """Skill content could not be fetched or placed."""

    def __init__(
        self,
        message: str,
        category: Optional[ErrorCategory] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        if category is None:
            self.error = categorize_error(message)
        else:
            self.error = InstallationError(
                category=category, message=message[:500], suggestion=suggestion
            )

    @property
    def category(self) -> ErrorCategory:
        return self.error.category


def _lexists(path: Path) -> bool:
    """True for existing paths and for dangling symlinks."""
    return path.is_symlink() or path.exists()


def local_source_path(source: str) -> Optional[Path]:
    """Path for an explicitly local source, else ``None``.

    Only absolute paths, ``./``, ``../``, ``~`` and ``file://`` sources are
    local; a bare ``owner/repo`` always names a remote repository.
    """
    source = source.strip()
    if source.startswith("file://"):
        return Path(source[len("file://"):])
    if source.startswith(("./", "../", ".\\", "..\\", "~")) or os.path.isabs(source):
        return Path(source).expanduser()
    return None


def resolve_clone_url(source: str) -> str:
    """Turn a skill source into a git URL.

    ``http(s)://`` and ``git@`` URLs are used as-is; ``github:owner/repo``
    and ``owner/repo`` map to GitHub.
    """
    source = source.strip()
    if source.startswith(("http://", "https://", "git@", "ssh://")):
        return source
    if source.startswith("github:"):
        source = source[len("github:"):]
    source = source.strip("/")
    if source.endswith(".git"):
        source = source[: -len(".git")]
    if not _OWNER_REPO.match(source):
        raise FetchError(
            f"Unsupported skill source {source!r}",
            ErrorCategory.SOURCE_NOT_FOUND,
            "Use owner/repo, github:owner/repo or a full git URL",
        )
    return _GITHUB_URL.format(source)


# ---------------------------------------------------------------------------
# Materializer
# ---------------------------------------------------------------------------

class GitMaterializer:
    """Fetch skill content with GitPython, or copy it from a local directory."""

    def materialize(self, source: str, target_dir: Union[str, Path]) -> None:
        target_dir = Path(target_dir)
        if _lexists(target_dir):
            raise FetchError(
                f"{target_dir} already exists",
                ErrorCategory.FILESYSTEM_ERROR,
                "Remove the existing directory and try again",
            )

        local = local_source_path(source)
        if local is None:
            self._clone(resolve_clone_url(source), target_dir)
        elif local.is_dir():
            self._copy_local(local, target_dir)
        else:
            raise FetchError(
                f"Local skill source {local} does not exist",
                ErrorCategory.SOURCE_NOT_FOUND,
                "Check the path recorded for this skill",
            )

    def _copy_local(self, source_dir: Path, target_dir: Path) -> None:
        try:
            shutil.copytree(
                str(source_dir), str(target_dir), ignore=shutil.ignore_patterns(".git")
            )
        except OSError as exc:
            raise FetchError(f"Copy from {source_dir} failed: {exc}") from exc
        logger.info("Copied local skill from %s to %s", source_dir, target_dir)

    def _clone(self, url: str, target_dir: Path) -> None:
        try:
            import git  # GitPython needs the git executable at import time
        except ImportError as exc:
            raise FetchError(
                f"git is not available: {exc}",
                ErrorCategory.UNKNOWN,
                "Install git and make sure it is on PATH",
            ) from exc

        name = target_dir.name
        temp_dir = target_dir.parent / f"{_TEMP_PREFIX}{name}"
        try:
            if _lexists(temp_dir):
                shutil.rmtree(str(temp_dir), ignore_errors=True)

            logger.info("Cloning %s", url)
            try:
                git.Repo.clone_from(url, str(temp_dir), depth=1)
            except git.GitCommandError as exc:
                detail = (exc.stderr or str(exc)).strip()
                raise FetchError(f"git clone {url} failed: {detail}") from exc
            except git.GitError as exc:
                raise FetchError(f"git clone {url} failed: {exc}") from exc

            # Monorepos keep each skill in its own folder.
            for candidate in (temp_dir / name, temp_dir / "skills" / name):
                if candidate.is_dir():
                    content = candidate
                    break
            else:
                shutil.rmtree(str(temp_dir / ".git"), ignore_errors=True)
                content = temp_dir

            try:
                shutil.move(str(content), str(target_dir))
            except OSError as exc:
                raise FetchError(f"Could not place {name} at {target_dir}: {exc}") from exc
        finally:
            if _lexists(temp_dir):
                shutil.rmtree(str(temp_dir), ignore_errors=True)

        logger.info("Cloned %s into %s", url, target_dir)


# ---------------------------------------------------------------------------
# Installer
# ---------------------------------------------------------------------------

class SkillInstaller:
    """Place selected skills in the central store and link agents to it."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        materializer=None,
        log_manager: Optional[InstallLogManager] = None,
        home: Optional[Path] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.materializer = materializer or GitMaterializer()
        self.log_manager = log_manager or InstallLogManager(self.settings.log_dir)
        self.home = home

    def link_agents(
        self, config: LocalConfig, project_dir: Path, central_dir: Path
    ) -> List[str]:
        """Symlink each agent's skills directory to *central_dir*.

        Existing paths are left alone.  Returns the agents newly linked.
        """
        linked: List[str] = []
        for agent_id in config.agents:
            integration = get_agent(agent_id)
            agent_dir = agent_skills_dir(integration, config.scope, project_dir, self.home)
            if _lexists(agent_dir):
                logger.debug("%s already has %s", integration.display_name, agent_dir)
                continue
            try:
                agent_dir.parent.mkdir(parents=True, exist_ok=True)
                relative = os.path.relpath(central_dir, agent_dir.parent)
                os.symlink(relative, agent_dir, target_is_directory=True)
            except OSError as exc:
                logger.warning(
                    "Could not link %s to central skills: %s", integration.display_name, exc
                )
                continue
            logger.info("Linked %s to central skills", integration.display_name)
            linked.append(agent_id)
        return linked

    def install_skills(
        self,
        selected_skills: Sequence[Skill],
        config: LocalConfig,
        project_dir: Union[str, Path],
    ) -> InstallReport:
        """Install *selected_skills* one after another.

        A failure is recorded for that skill and the batch continues.
        """
        project_dir = Path(project_dir)
        central_dir = central_skills_dir(config.scope, project_dir, self.home)
        if not central_dir.exists():
            central_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created central skills directory %s", central_dir)

        report = InstallReport(central_dir=str(central_dir))
        report.linked_agents = self.link_agents(config, project_dir, central_dir)
        report.session_id = self.log_manager.start_session(
            project_dir, config.scope, config.agents
        )

        try:
            for skill in selected_skills:
                outcome = self._install_one(skill, config, project_dir, central_dir)
                self.log_manager.record_attempt(outcome)
                report.outcomes.append(outcome)
        finally:
            self.log_manager.end_session()

        logger.info(
            "Install finished: %d installed, %d already present, %d skipped, %d failed",
            report.count(InstallStatus.INSTALLED),
            report.count(InstallStatus.ALREADY_INSTALLED),
            report.count(InstallStatus.SKIPPED_NO_SOURCE),
            report.count(InstallStatus.FAILED),
        )
        return report

    def _install_one(
        self,
        skill: Skill,
        config: LocalConfig,
        project_dir: Path,
        central_dir: Path,
    ) -> InstallOutcome:
        start = time.monotonic()
        source = skill.source if skill.source and skill.source != UNKNOWN_SOURCE else None

        def outcome(status: InstallStatus, message: str, error=None) -> InstallOutcome:
            return InstallOutcome(
                name=skill.name,
                source=source,
                status=status,
                message=message,
                error=error,
                duration_seconds=time.monotonic() - start,
            )

        if source is None:
            logger.warning("Skipping %s - no source found", skill.name)
            return outcome(InstallStatus.SKIPPED_NO_SOURCE, "no source found")

        if skill.name in ("", ".", "..") or "/" in skill.name or "\\" in skill.name:
            error = InstallationError(
                category=ErrorCategory.FILESYSTEM_ERROR,
                message=f"Invalid skill name {skill.name!r}",
            )
            return outcome(InstallStatus.FAILED, error.message, error)

        target = central_dir / skill.name
        if _lexists(target):
            logger.info("%s already installed", skill.name)
            return outcome(InstallStatus.ALREADY_INSTALLED, "already installed")

        try:
            self.materializer.materialize(source, target)
        except FetchError as exc:
            logger.error("Failed to install %s: %s", skill.name, exc)
            return outcome(InstallStatus.FAILED, str(exc), exc.error)

        if not read_skill_metadata(target):
            logger.warning("%s has no SKILL.md frontmatter", skill.name)

        try:
            record_skill(project_dir, config, skill.name, source)
        except OSError as exc:
            logger.warning("Installed %s but could not update config: %s", skill.name, exc)

        logger.info("Installed %s from %s", skill.name, source)
        return outcome(InstallStatus.INSTALLED, f"installed from {source}")
