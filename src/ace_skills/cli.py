"""
Command-line interface for ace.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import click

from . import __version__
from .agents import AGENT_INTEGRATIONS, ALL_AGENT_IDS, detect_installed_agents
from .config import ConfigError, load_config, reset_config, save_config, sync_installed_skills
from .display import (
    format_report,
    format_search_hits,
    format_stats,
    format_suggestions,
)
from .install_log import InstallLogManager
from .installer import SkillInstaller
from .models import DirectoryHit, LocalConfig, MatchType, Scope, Skill, SuggestionResult
from .registry import SkillsDirectoryClient
from .settings import Settings, load_settings
from .signals import ManifestError, list_installed_skills, read_declared_dependencies
from .suggest import SuggestionEngine, compute_relevance_score

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Selection parsing
# ---------------------------------------------------------------------------

def parse_selection(text: str, count: int) -> List[int]:
    """Parse ``1,3`` / ``1 3`` / ``all`` into zero-based indices.

    Blank input selects nothing.  Raises ``click.BadParameter`` for numbers
    outside ``1..count`` or anything that is not a number.
    """
    text = text.strip().lower()
    if not text:
        return []
    if text == "all":
        return list(range(count))

    indices: List[int] = []
    for token in text.replace(",", " ").split():
        if not token.isdigit():
            raise click.BadParameter(f"'{token}' is not a number")
        number = int(token)
        if not 1 <= number <= count:
            raise click.BadParameter(f"{number} is out of range (1-{count})")
        if number - 1 not in indices:
            indices.append(number - 1)
    return indices


def parse_agent_selection(text: str) -> List[str]:
    """Parse agent numbers (from the setup listing) or ids."""
    agents: List[str] = []
    for token in text.replace(",", " ").split():
        if token.isdigit():
            number = int(token)
            if not 1 <= number <= len(ALL_AGENT_IDS):
                raise click.BadParameter(f"{number} is out of range (1-{len(ALL_AGENT_IDS)})")
            agent_id = ALL_AGENT_IDS[number - 1]
        elif token in AGENT_INTEGRATIONS:
            agent_id = token
        else:
            raise click.BadParameter(f"unknown agent '{token}'")
        if agent_id not in agents:
            agents.append(agent_id)
    return agents


# ---------------------------------------------------------------------------
# Flow steps
# ---------------------------------------------------------------------------

def first_run_setup(project_dir: Path) -> Optional[LocalConfig]:
    """Ask which agents and scope to use; ``None`` when nothing was chosen."""
    click.echo("First run detected. Let's set up your preferences.\n")
    detected = set(detect_installed_agents(cwd=project_dir))
    defaults: List[str] = []
    for number, agent_id in enumerate(ALL_AGENT_IDS, 1):
        integration = AGENT_INTEGRATIONS[agent_id]
        marker = " (detected)" if agent_id in detected else ""
        click.echo(f"  {number:>2}. {integration.display_name}{marker}")
        if marker:
            defaults.append(str(number))

    agents = click.prompt(
        "\nWhich AI agents do you use? (numbers or ids, comma-separated)",
        default=",".join(defaults),
        show_default=bool(defaults),
        value_proc=parse_agent_selection,
    )
    if not agents:
        return None

    scope = click.prompt(
        "Install skills for this project or globally?",
        type=click.Choice([Scope.PROJECT.value, Scope.GLOBAL.value]),
        default=Scope.PROJECT.value,
    )
    config = LocalConfig(agents=agents, scope=scope)
    path = save_config(project_dir, config)
    click.echo(f"Saved preferences to {path.name}")
    return config


async def collect_suggestions(
    settings: Settings,
    project_dir: Path,
    config: LocalConfig,
    limit: int,
    declared_deps: Sequence[str],
    installed_skills: Sequence[str],
) -> SuggestionResult:
    async with SuggestionEngine(settings) as engine:
        return await engine.generate_suggestions(
            project_dir,
            agent_ids=config.agents,
            scope=config.scope,
            limit=limit,
            declared_deps=declared_deps,
            installed_skills=installed_skills,
        )


async def search_directory(settings: Settings, query: str) -> List[DirectoryHit]:
    async with SkillsDirectoryClient(settings) as directory:
        return await directory.search_by_keyword(query, SEARCH_LIMIT)


def _skill_from_hit(hit: DirectoryHit) -> Skill:
    skill = Skill(
        name=hit.name,
        source=hit.source,
        installs=hit.installs,
        match_type=MatchType.FREE_TEXT_SEARCH,
    )
    skill.relevance_score = compute_relevance_score(skill)
    return skill


def search_more_skills(
    settings: Settings, selected: List[Skill], installed_skills: Sequence[str]
) -> None:
    """Loop over free-text searches, appending picks to *selected*."""
    while True:
        query = click.prompt(
            f"Search for skills ({len(selected)} selected, blank to finish)",
            default="",
            show_default=False,
        ).strip()
        if not query:
            return

        hits = asyncio.run(search_directory(settings, query))
        taken = {skill.name for skill in selected} | set(installed_skills)
        hits = [hit for hit in hits if hit.name not in taken]
        if not hits:
            click.echo(f'No new skills found for "{query}". Try another search.')
            continue

        click.echo("\n".join(format_search_hits(hits)))
        picks = click.prompt(
            "Select skills to add (e.g. 1,3 or 'all', blank to skip)",
            default="",
            show_default=False,
            value_proc=lambda text: parse_selection(text, len(hits)),
        )
        selected.extend(_skill_from_hit(hits[index]) for index in picks)


def run_flow(project_dir: Path, limit: int, settings: Settings) -> str:
    """Collect, suggest, select and install; returns the closing word."""
    config = load_config(project_dir)
    if config is None:
        config = first_run_setup(project_dir)
        if config is None:
            return "Cancelled"

    config = sync_installed_skills(project_dir, config)
    declared = read_declared_dependencies(project_dir)
    installed = list_installed_skills(project_dir, agent_ids=config.agents, scope=config.scope)
    click.echo(
        f"Analyzing project: {len(declared)} package(s), {len(installed)} installed skill(s)"
    )

    result = asyncio.run(
        collect_suggestions(settings, project_dir, config, limit, declared, installed)
    )
    click.echo("\n".join(format_suggestions(result)))

    selected: List[Skill] = []
    if result.skills:
        picks = click.prompt(
            "Select skills to install (e.g. 1,3 or 'all', blank to skip)",
            default="",
            show_default=False,
            value_proc=lambda text: parse_selection(text, len(result.skills)),
        )
        selected.extend(result.skills[index] for index in picks)

    if click.confirm("Would you like to search for more skills?", default=False):
        search_more_skills(settings, selected, installed)

    if not selected:
        click.echo("No skills selected.")
        return "Done"

    plural = "" if len(selected) == 1 else "s"
    if not click.confirm(f"Selected {len(selected)} skill{plural} to install. Proceed?", default=True):
        click.echo("Installation cancelled.")
        return "Cancelled"

    report = SkillInstaller(settings).install_skills(selected, config, project_dir)
    click.echo("\n".join(format_report(report)))
    return "Done"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def suggest_options(func):
    """Options shared by the default command and ``ace suggest``."""
    func = click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")(func)
    func = click.option(
        "--project-dir",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        default=None,
        help="Project directory (defaults to the current directory)",
    )(func)
    func = click.option(
        "--limit", "-l", type=click.IntRange(min=1), default=None,
        help="Max suggestions to show",
    )(func)
    return func


@click.group(invoke_without_command=True)
@suggest_options
@click.version_option(__version__, prog_name="ace")
@click.pass_context
def main(ctx, limit: Optional[int], project_dir: Optional[Path], verbose: bool):
    """ace - discover and install agent skills for your project."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(suggest, limit=limit, project_dir=project_dir, verbose=verbose)


@main.command()
@suggest_options
def suggest(limit: Optional[int], project_dir: Optional[Path], verbose: bool):
    """Suggest and install skills for your project."""
    _configure_logging(verbose)
    settings = load_settings()
    project_dir = (project_dir or Path.cwd()).resolve()

    try:
        closing = run_flow(project_dir, limit or settings.default_limit, settings)
    except (ManifestError, ConfigError) as exc:
        raise click.ClickException(str(exc)) from exc
    except click.Abort:
        closing = "\nCancelled"
    click.echo(closing)


@main.command()
@click.option(
    "--project-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project directory (defaults to the current directory)",
)
def config(project_dir: Optional[Path]):
    """Reset configuration."""
    if reset_config(project_dir or Path.cwd()):
        click.echo("Config reset. Run 'ace' to reconfigure.")
    else:
        click.echo("No config found.")


@main.command()
@click.option(
    "--format",
    "output_format",
    default="table",
    type=click.Choice(["table", "json"]),
    help="Output format",
)
def stats(output_format: str):
    """Show skill installation statistics."""
    settings = load_settings()
    stats_data = InstallLogManager(settings.log_dir).get_installation_stats()

    if output_format == "json":
        click.echo(json.dumps(stats_data, indent=2, default=str))
    else:
        click.echo("\n".join(format_stats(stats_data)))


@main.command()
@click.argument("session_id")
@click.option(
    "--format",
    "output_format",
    default="detailed",
    type=click.Choice(["detailed", "json"]),
    help="Output format",
)
def session(session_id: str, output_format: str):
    """Show details of one install session."""
    settings = load_settings()
    session_data = InstallLogManager(settings.log_dir).get_session_details(session_id)

    if not session_data:
        click.echo(f"Session {session_id} not found.")
        return

    if output_format == "json":
        click.echo(json.dumps(session_data, indent=2, default=str))
        return

    click.echo(f"=== Install Session {session_id} ===")
    click.echo(f"Project: {session_data.get('project_dir')}")
    click.echo(f"Scope: {session_data.get('scope')}")
    click.echo(f"Agents: {', '.join(session_data.get('agents', []))}")
    click.echo(f"Started: {session_data.get('started_at')}")
    click.echo(f"Duration: {session_data.get('duration_seconds') or 0:.1f}s")

    attempts = session_data.get("attempts", [])
    if attempts:
        click.echo(f"\n=== Attempts ({len(attempts)}) ===")
        for i, attempt in enumerate(attempts, 1):
            click.echo(f"  {i}. {attempt.get('name')}: {attempt.get('status')}")
            error = attempt.get("error")
            if error:
                click.echo(f"     Error ({error.get('category')}): {error.get('message')}")
                if error.get("suggestion"):
                    click.echo(f"     Suggestion: {error.get('suggestion')}")


if __name__ == "__main__":
    main()
