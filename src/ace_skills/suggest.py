"""
Suggestion engine.

Combines local project signals with the two registries into one ranked,
size-bounded list of skills:

1. collect declared dependencies and installed skills;
2. ask the primary suggestion API;
3. independently build a result set from the skills directory (keyword
   search per dependency, sibling search for recognised installed skills);
4. score, merge by lower-cased name (primary wins), order and truncate.

A failing registry only removes its own contribution.
"""

import logging
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .models import MatchType, Provenance, Scope, Skill, SuggestionResult
from .registry import PrimaryRegistryClient, RegistryError, SkillsDirectoryClient
from .settings import Settings
from .signals import list_installed_skills, read_declared_dependencies

logger = logging.getLogger(__name__)

# ─── Scoring constants ────────────────────────────────────────────────────────

MATCH_TYPE_BOOST: Dict[MatchType, float] = {
    MatchType.DECLARED_DEPENDENCY: 1000.0,
    MatchType.RELATED_TO_INSTALLED_SKILL: 500.0,
    MatchType.FREE_TEXT_SEARCH: 0.0,
}
EXTRA_DEPENDENCY_BOOST = 100.0


# ─── Scoring and ordering helpers ─────────────────────────────────────────────


def compute_relevance_score(skill: Skill, extra_dependencies: int = 0) -> float:
    """``log10(installs + 1) * 100`` plus the match-type boost.

    *extra_dependencies* counts the declared dependencies beyond the first
    that surfaced the skill; each adds :data:`EXTRA_DEPENDENCY_BOOST`.
    """
    base = math.log10(skill.installs + 1) * 100
    boost = MATCH_TYPE_BOOST[skill.match_type]
    return base + boost + max(0, extra_dependencies) * EXTRA_DEPENDENCY_BOOST


def _primary_key(skill: Skill) -> Tuple[int, int, str]:
    return (skill.match_type.priority, -skill.installs, skill.name)


def _ranking_key(skill: Skill) -> Tuple[float, int, int, str]:
    return (-skill.relevance_score, *_primary_key(skill))


def sort_primary_results(skills: Iterable[Skill]) -> List[Skill]:
    """Order by match-type priority, then installs descending, then name."""
    return sorted(skills, key=_primary_key)


def rank_by_relevance(skills: Iterable[Skill]) -> List[Skill]:
    """Order by relevance descending; ties fall back to the primary order."""
    return sorted(skills, key=_ranking_key)


def merge_sources(primary: Sequence[Skill], secondary: Sequence[Skill]) -> List[Skill]:
    """Union keyed by lower-cased name, primary records winning, ranked."""
    merged: Dict[str, Skill] = {}
    for skill in primary:
        merged.setdefault(skill.dedup_key, skill)
    for skill in secondary:
        merged.setdefault(skill.dedup_key, skill)
    return rank_by_relevance(merged.values())


def _extend_unique(target: List[str], values: Iterable[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


# ─── Engine ──────────────────────────────────────────────────────────────────


class SuggestionEngine:
    """Orchestrates signal collection, registry lookups and ranking.

    Usage::

        async with SuggestionEngine(settings) as engine:
            result = await engine.generate_suggestions(Path.cwd(), limit=10)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        primary: Optional[PrimaryRegistryClient] = None,
        secondary: Optional[SkillsDirectoryClient] = None,
    ) -> None:
        self.settings = settings or Settings()
        self._owns_primary = primary is None
        self._owns_secondary = secondary is None
        self.primary = primary or PrimaryRegistryClient(self.settings)
        self.secondary = secondary or SkillsDirectoryClient(self.settings)

    async def __aenter__(self) -> "SuggestionEngine":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close registry clients created by this engine."""
        if self._owns_primary:
            await self.primary.close()
        if self._owns_secondary:
            await self.secondary.close()

    # -- public API -----------------------------------------------------------

    async def generate_suggestions(
        self,
        project_dir: Union[str, Path],
        agent_ids: Optional[Sequence[str]] = None,
        scope: Union[str, Scope] = Scope.PROJECT,
        limit: int = 10,
        declared_deps: Optional[Sequence[str]] = None,
        installed_skills: Optional[Sequence[str]] = None,
    ) -> SuggestionResult:
        """Return ranked suggestions for *project_dir*.

        Registry failures never escape; a ``ManifestError`` raised while
        reading the manifest does.
        """
        if declared_deps is None:
            declared_deps = read_declared_dependencies(project_dir)
        if installed_skills is None:
            installed_skills = list_installed_skills(
                project_dir, agent_ids=agent_ids, scope=scope
            )
        declared_deps = list(dict.fromkeys(declared_deps))
        installed_skills = list(dict.fromkeys(installed_skills))

        if not declared_deps and not installed_skills:
            logger.debug("No dependencies or installed skills, nothing to suggest")
            return SuggestionResult(provenance=Provenance.NONE)

        logger.info(
            "Generating suggestions for %d dependencies and %d installed skills",
            len(declared_deps),
            len(installed_skills),
        )

        primary_skills: List[Skill] = []
        primary_total = 0
        matched_dependencies: List[str] = []
        matched_installed: List[str] = []

        try:
            lookup = await self.primary.lookup_by_dependencies_and_installed(
                declared_deps, installed_skills, limit
            )
        except RegistryError as exc:
            logger.info("Primary registry unavailable, continuing without it: %s", exc)
        else:
            if lookup.skills:
                primary_skills = sort_primary_results(lookup.skills)
                for skill in primary_skills:
                    skill.relevance_score = compute_relevance_score(skill)
                primary_total = max(lookup.total, len(primary_skills))
                _extend_unique(matched_dependencies, lookup.matched_packages)
                _extend_unique(matched_installed, lookup.matched_installed_skills)

        secondary_skills, secondary_deps, secondary_installed = await self._secondary_suggestions(
            declared_deps, installed_skills
        )
        if not secondary_skills:
            logger.info("Skills directory produced no suggestions")
        else:
            _extend_unique(matched_dependencies, secondary_deps)
            _extend_unique(matched_installed, secondary_installed)

        if primary_skills and secondary_skills:
            ranked = merge_sources(primary_skills, secondary_skills)
            provenance = Provenance.COMBINED
            total = len(ranked)
        elif primary_skills:
            ranked = primary_skills
            provenance = Provenance.PRIMARY
            total = primary_total
        elif secondary_skills:
            ranked = secondary_skills
            provenance = Provenance.SECONDARY
            total = len(ranked)
        else:
            return SuggestionResult(provenance=Provenance.NONE)

        result = SuggestionResult(
            skills=ranked[: max(limit, 0)],
            total=total,
            matched_dependencies=matched_dependencies,
            matched_installed_skills=matched_installed,
            provenance=provenance,
        )
        logger.info(
            "Suggested %d of %d skill(s) from %s source",
            len(result.skills),
            result.total,
            provenance.value,
        )
        return result

    # -- skills directory -----------------------------------------------------

    async def _secondary_suggestions(
        self, declared_deps: List[str], installed_skills: List[str]
    ) -> Tuple[List[Skill], List[str], List[str]]:
        """Build the skills-directory result set.

        Returns the ranked skills, the dependencies that surfaced at least
        one of them and the installed skills with at least one sibling.
        """
        installed_lower = {name.lower() for name in installed_skills}
        found: Dict[Tuple[str, str], Skill] = {}
        extra_hits: Dict[Tuple[str, str], int] = {}
        matched_deps: List[str] = []
        matched_installed: List[str] = []

        # a. keyword search per declared dependency
        if declared_deps:
            by_dependency = await self.secondary.batch_search(
                declared_deps, self.settings.per_package_limit
            )
            for dependency in declared_deps:
                for hit in by_dependency.get(dependency, []):
                    if hit.name.lower() in installed_lower:
                        continue
                    _extend_unique(matched_deps, [dependency])
                    key = (hit.name, hit.source)
                    existing = found.get(key)
                    if existing is None:
                        found[key] = Skill(
                            name=hit.name,
                            source=hit.source,
                            installs=hit.installs,
                            associated_packages=[dependency],
                            match_type=MatchType.DECLARED_DEPENDENCY,
                        )
                        extra_hits[key] = 0
                    elif existing.add_package(dependency):
                        extra_hits[key] += 1

        # b. siblings of installed skills recognised with high confidence
        if installed_skills:
            fuzzy = await self.secondary.fuzzy_match_names(installed_skills)
            trusted: Dict[str, str] = {}
            for name in installed_skills:
                match = fuzzy.get(name)
                if match is None or not match.source:
                    continue
                if match.score >= self.settings.exact_match_threshold:
                    trusted[name] = match.source
                else:
                    logger.debug("Ignoring weak match for %s (score %.1f)", name, match.score)

            if trusted:
                by_source = await self.secondary.batch_search(
                    trusted.values(), self.settings.sibling_limit
                )
                for name, source in trusted.items():
                    siblings = [
                        hit
                        for hit in by_source.get(source, [])
                        if hit.name.lower() != name.lower()
                        and hit.name.lower() not in installed_lower
                    ]
                    if siblings:
                        matched_installed.append(name)
                    for hit in siblings:
                        key = (hit.name, hit.source)
                        if key in found:
                            continue
                        found[key] = Skill(
                            name=hit.name,
                            source=hit.source,
                            installs=hit.installs,
                            match_type=MatchType.RELATED_TO_INSTALLED_SKILL,
                        )
                        extra_hits[key] = 0

        # c. score; same-named skills from different sources stay distinct
        for key, skill in found.items():
            skill.relevance_score = compute_relevance_score(skill, extra_hits[key])

        return rank_by_relevance(found.values()), matched_deps, matched_installed
