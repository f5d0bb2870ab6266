"""
Text rendering for the ace CLI.
"""

from typing import Any, Dict, List, Sequence

from .models import (
    DirectoryHit,
    InstallReport,
    InstallStatus,
    MatchType,
    Skill,
    SuggestionResult,
)

RULE = "=" * 60

_STATUS_MARKS = {
    InstallStatus.INSTALLED: "✓",
    InstallStatus.ALREADY_INSTALLED: "•",
    InstallStatus.SKIPPED_NO_SOURCE: "-",
    InstallStatus.FAILED: "✗",
}


def format_installs(installs: int) -> str:
    """Compact install count: ``950``, ``1.2K``, ``3.4M``."""
    if installs >= 1_000_000:
        return f"{installs / 1_000_000:.1f}M"
    if installs >= 1_000:
        return f"{installs / 1_000:.1f}K"
    return str(installs)


def origin_label(skill: Skill) -> str:
    """Why a skill is listed: the dependency, ``related`` or ``search``."""
    if skill.match_type == MatchType.DECLARED_DEPENDENCY:
        return skill.associated_packages[0] if skill.associated_packages else "dependency"
    if skill.match_type == MatchType.RELATED_TO_INSTALLED_SKILL:
        return "related"
    return "search"


def format_suggestion_line(index: int, skill: Skill) -> str:
    line = f"  {index:>2}. {skill.name}  ({origin_label(skill)} · {format_installs(skill.installs)} installs)"
    if skill.title and skill.title != skill.name:
        line += f"  {skill.title}"
    return line


def format_suggestions(result: SuggestionResult) -> List[str]:
    """Numbered suggestion listing with a short header."""
    if not result.skills:
        return ["No suggestions found for your project."]

    lines = [f"Found {result.total} skill(s) (showing {len(result.skills)}):"]
    if result.matched_dependencies:
        lines.append(f"Matched packages: {', '.join(result.matched_dependencies)}")
    if result.matched_installed_skills:
        lines.append(
            f"Matched installed skills: {', '.join(result.matched_installed_skills)}"
        )
    lines.append(RULE)
    for index, skill in enumerate(result.skills, 1):
        lines.append(format_suggestion_line(index, skill))
        if skill.description:
            lines.append(f"      {skill.description}")
    lines.append(RULE)
    return lines


def format_search_hits(hits: Sequence[DirectoryHit]) -> List[str]:
    return [
        f"  {index:>2}. {hit.name}  ({format_installs(hit.installs)} installs)"
        for index, hit in enumerate(hits, 1)
    ]


def format_report(report: InstallReport) -> List[str]:
    """Per-skill install results followed by a one-line summary."""
    lines: List[str] = []
    for outcome in report.outcomes:
        mark = _STATUS_MARKS[outcome.status]
        line = f"  {mark} {outcome.name}: {outcome.message or outcome.status.value}"
        if outcome.error and outcome.error.suggestion:
            line += f" ({outcome.error.suggestion})"
        lines.append(line)

    installed = report.count(InstallStatus.INSTALLED)
    summary = f"Installed {installed} skill(s) to {report.central_dir}"
    if report.linked_agents:
        summary += f" (linked {', '.join(report.linked_agents)})"
    failed = report.count(InstallStatus.FAILED)
    if failed:
        summary += f", {failed} failed"
    lines.append(summary)
    return lines


def format_stats(stats: Dict[str, Any]) -> List[str]:
    """Table rendering of ``InstallLogManager.get_installation_stats()``."""
    lines = ["=== Skill Installation Statistics ==="]
    total = stats.get("total_attempts", 0)
    by_status = stats.get("by_status", {})
    lines.append(f"Sessions: {stats.get('sessions', 0)}")
    lines.append(f"Total Attempts: {total}")
    for status in InstallStatus:
        lines.append(f"  {status.value}: {by_status.get(status.value, 0)}")

    if total:
        ok = by_status.get(InstallStatus.INSTALLED.value, 0) + by_status.get(
            InstallStatus.ALREADY_INSTALLED.value, 0
        )
        lines.append(f"Success Rate: {ok / total * 100:.1f}%")

    categories = stats.get("error_categories", {})
    if categories:
        lines.append("")
        lines.append("=== Error Categories ===")
        for category, count in sorted(categories.items(), key=lambda x: x[1], reverse=True):
            lines.append(f"  {category}: {count}")

    recent = stats.get("recent_attempts", [])[:10]
    if recent:
        lines.append("")
        lines.append("=== Recent Attempts ===")
        for attempt in recent:
            duration = attempt.get("duration")
            duration_text = f"{duration:.1f}s" if duration else "N/A"
            lines.append(f"  {attempt.get('status')} {attempt.get('skill')} ({duration_text})")
    return lines
