"""
Supported coding-agent integrations.

Each agent reads skills from its own directory, both inside a project and
under the user's home.  The table is built once at import and exposed
read-only; the installer links every configured agent's directory to the
central ``.agents/skills`` store.
"""

import logging
from pathlib import Path
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple, Union

from .models import AgentIntegration, Scope

logger = logging.getLogger(__name__)

CENTRAL_SKILLS_DIR = Path(".agents") / "skills"

# ---------------------------------------------------------------------------
# Integration table
# ---------------------------------------------------------------------------

_INTEGRATIONS: Tuple[AgentIntegration, ...] = (
    AgentIntegration(
        id="amp",
        display_name="Amp",
        project_skills_dir=".agents/skills",
        global_skills_dir=".config/agents/skills",
        detect_paths=(".config/amp",),
    ),
    AgentIntegration(
        id="antigravity",
        display_name="Antigravity",
        project_skills_dir=".agent/skills",
        global_skills_dir=".gemini/antigravity/global_skills",
        detect_paths=(".gemini/antigravity",),
        project_markers=(".agent",),
    ),
    AgentIntegration(
        id="claude-code",
        display_name="Claude Code",
        project_skills_dir=".claude/skills",
        global_skills_dir=".claude/skills",
        detect_paths=(".claude",),
        home_env="CLAUDE_CONFIG_DIR",
    ),
    AgentIntegration(
        id="moltbot",
        display_name="Moltbot",
        project_skills_dir="skills",
        global_skills_dir=".moltbot/skills",
        detect_paths=(".moltbot", ".clawdbot"),
    ),
    AgentIntegration(
        id="cline",
        display_name="Cline",
        project_skills_dir=".cline/skills",
        global_skills_dir=".cline/skills",
        detect_paths=(".cline",),
    ),
    AgentIntegration(
        id="codebuddy",
        display_name="CodeBuddy",
        project_skills_dir=".codebuddy/skills",
        global_skills_dir=".codebuddy/skills",
        detect_paths=(".codebuddy",),
        project_markers=(".codebuddy",),
    ),
    AgentIntegration(
        id="codex",
        display_name="Codex",
        project_skills_dir=".codex/skills",
        global_skills_dir=".codex/skills",
        detect_paths=(".codex",),
        home_env="CODEX_HOME",
    ),
    AgentIntegration(
        id="command-code",
        display_name="Command Code",
        project_skills_dir=".commandcode/skills",
        global_skills_dir=".commandcode/skills",
        detect_paths=(".commandcode",),
    ),
    AgentIntegration(
        id="continue",
        display_name="Continue",
        project_skills_dir=".continue/skills",
        global_skills_dir=".continue/skills",
        detect_paths=(".continue",),
        project_markers=(".continue",),
    ),
    AgentIntegration(
        id="crush",
        display_name="Crush",
        project_skills_dir=".crush/skills",
        global_skills_dir=".config/crush/skills",
        detect_paths=(".config/crush",),
    ),
    AgentIntegration(
        id="cursor",
        display_name="Cursor",
        project_skills_dir=".cursor/skills",
        global_skills_dir=".cursor/skills",
        detect_paths=(".cursor",),
    ),
    AgentIntegration(
        id="droid",
        display_name="Droid",
        project_skills_dir=".factory/skills",
        global_skills_dir=".factory/skills",
        detect_paths=(".factory",),
    ),
    AgentIntegration(
        id="gemini-cli",
        display_name="Gemini CLI",
        project_skills_dir=".gemini/skills",
        global_skills_dir=".gemini/skills",
        detect_paths=(".gemini",),
    ),
    AgentIntegration(
        id="github-copilot",
        display_name="GitHub Copilot",
        project_skills_dir=".github/skills",
        global_skills_dir=".copilot/skills",
        detect_paths=(".copilot",),
        project_markers=(".github",),
    ),
    AgentIntegration(
        id="goose",
        display_name="Goose",
        project_skills_dir=".goose/skills",
        global_skills_dir=".config/goose/skills",
        detect_paths=(".config/goose",),
    ),
    AgentIntegration(
        id="junie",
        display_name="Junie",
        project_skills_dir=".junie/skills",
        global_skills_dir=".junie/skills",
        detect_paths=(".junie",),
    ),
    AgentIntegration(
        id="kilo",
        display_name="Kilo Code",
        project_skills_dir=".kilocode/skills",
        global_skills_dir=".kilocode/skills",
        detect_paths=(".kilocode",),
    ),
    AgentIntegration(
        id="kimi-cli",
        display_name="Kimi Code CLI",
        project_skills_dir=".agents/skills",
        global_skills_dir=".config/agents/skills",
        detect_paths=(".kimi",),
    ),
    AgentIntegration(
        id="kiro-cli",
        display_name="Kiro CLI",
        project_skills_dir=".kiro/skills",
        global_skills_dir=".kiro/skills",
        detect_paths=(".kiro",),
    ),
    AgentIntegration(
        id="kode",
        display_name="Kode",
        project_skills_dir=".kode/skills",
        global_skills_dir=".kode/skills",
        detect_paths=(".kode",),
    ),
    AgentIntegration(
        id="mcpjam",
        display_name="MCPJam",
        project_skills_dir=".mcpjam/skills",
        global_skills_dir=".mcpjam/skills",
        detect_paths=(".mcpjam",),
    ),
    AgentIntegration(
        id="mux",
        display_name="Mux",
        project_skills_dir=".mux/skills",
        global_skills_dir=".mux/skills",
        detect_paths=(".mux",),
    ),
    AgentIntegration(
        id="opencode",
        display_name="OpenCode",
        project_skills_dir=".opencode/skills",
        global_skills_dir=".config/opencode/skills",
        detect_paths=(".config/opencode", ".claude/skills"),
    ),
    AgentIntegration(
        id="openhands",
        display_name="OpenHands",
        project_skills_dir=".openhands/skills",
        global_skills_dir=".openhands/skills",
        detect_paths=(".openhands",),
    ),
    AgentIntegration(
        id="pi",
        display_name="Pi",
        project_skills_dir=".pi/skills",
        global_skills_dir=".pi/agent/skills",
        detect_paths=(".pi/agent",),
    ),
    AgentIntegration(
        id="qoder",
        display_name="Qoder",
        project_skills_dir=".qoder/skills",
        global_skills_dir=".qoder/skills",
        detect_paths=(".qoder",),
    ),
    AgentIntegration(
        id="qwen-code",
        display_name="Qwen Code",
        project_skills_dir=".qwen/skills",
        global_skills_dir=".qwen/skills",
        detect_paths=(".qwen",),
    ),
    AgentIntegration(
        id="roo",
        display_name="Roo Code",
        project_skills_dir=".roo/skills",
        global_skills_dir=".roo/skills",
        detect_paths=(".roo",),
    ),
    AgentIntegration(
        id="trae",
        display_name="Trae",
        project_skills_dir=".trae/skills",
        global_skills_dir=".trae/skills",
        detect_paths=(".trae",),
    ),
    AgentIntegration(
        id="windsurf",
        display_name="Windsurf",
        project_skills_dir=".windsurf/skills",
        global_skills_dir=".codeium/windsurf/skills",
        detect_paths=(".codeium/windsurf",),
    ),
    AgentIntegration(
        id="zencoder",
        display_name="Zencoder",
        project_skills_dir=".zencoder/skills",
        global_skills_dir=".zencoder/skills",
        detect_paths=(".zencoder",),
    ),
    AgentIntegration(
        id="neovate",
        display_name="Neovate",
        project_skills_dir=".neovate/skills",
        global_skills_dir=".neovate/skills",
        detect_paths=(".neovate",),
    ),
    AgentIntegration(
        id="pochi",
        display_name="Pochi",
        project_skills_dir=".pochi/skills",
        global_skills_dir=".pochi/skills",
        detect_paths=(".pochi",),
    ),
)

AGENT_INTEGRATIONS: Mapping[str, AgentIntegration] = MappingProxyType(
    {integration.id: integration for integration in _INTEGRATIONS}
)

ALL_AGENT_IDS: Tuple[str, ...] = tuple(AGENT_INTEGRATIONS)

# Used when nothing is detected on this machine.
POPULAR_AGENTS: Tuple[str, ...] = (
    "cursor",
    "claude-code",
    "windsurf",
    "continue",
    "cline",
    "roo",
)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def get_agent(agent_id: str) -> AgentIntegration:
    """Return the integration for *agent_id*; raises ``KeyError`` if unknown."""
    try:
        return AGENT_INTEGRATIONS[agent_id]
    except KeyError:
        raise KeyError(f"Unknown agent: {agent_id}") from None


def is_known_agent(agent_id: str) -> bool:
    return agent_id in AGENT_INTEGRATIONS


def detect_installed_agents(
    home: Optional[Path] = None, cwd: Optional[Path] = None
) -> List[str]:
    """Return ids of agents whose config directory is present, in table order."""
    detected: List[str] = []
    for agent_id, integration in AGENT_INTEGRATIONS.items():
        try:
            if integration.detect_installed(home=home, cwd=cwd):
                detected.append(agent_id)
        except OSError as exc:
            logger.debug("Detection failed for %s: %s", agent_id, exc)
    logger.debug("Detected agents: %s", detected)
    return detected


def agent_skills_dir(
    agent: Union[str, AgentIntegration],
    scope: Union[str, Scope],
    project_dir: Path,
    home: Optional[Path] = None,
) -> Path:
    """Resolve where *agent* expects its skills for an install *scope*."""
    integration = get_agent(agent) if isinstance(agent, str) else agent
    if Scope(scope) == Scope.GLOBAL:
        return integration.global_skills_path(home)
    return integration.project_skills_path(project_dir)


def central_skills_dir(
    scope: Union[str, Scope], project_dir: Path, home: Optional[Path] = None
) -> Path:
    """The shared ``.agents/skills`` store every configured agent links to."""
    root = (home or Path.home()) if Scope(scope) == Scope.GLOBAL else Path(project_dir)
    return root / CENTRAL_SKILLS_DIR
