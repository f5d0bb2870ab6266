"""Test doubles shared across the test modules."""

from pathlib import Path
from unittest.mock import MagicMock

from ace_skills.models import DirectoryHit, FuzzyMatch, PrimaryLookupResult


def make_response(payload, status_code=200):
    """A MagicMock shaped like an ``httpx.Response``."""
    response = MagicMock()
    response.status_code = status_code
    response.raise_for_status = MagicMock()
    response.json.return_value = payload
    return response


class FakeDirectory:
    """In-memory stand-in for ``SkillsDirectoryClient``."""

    def __init__(self, hits=None, matches=None):
        self.hits = hits or {}
        self.matches = matches or {}
        self.batch_calls = []
        self.fuzzy_calls = []

    async def search_by_keyword(self, query, limit):
        return [DirectoryHit.model_validate(h) for h in self.hits.get(query, [])][:limit]

    async def fuzzy_match_names(self, names):
        names = list(names)
        self.fuzzy_calls.append(names)
        return {
            name: (FuzzyMatch.model_validate(self.matches[name]) if self.matches.get(name) else None)
            for name in names
        }

    async def batch_search(self, queries, per_query_limit):
        queries = list(queries)
        self.batch_calls.append((queries, per_query_limit))
        return {q: await self.search_by_keyword(q, per_query_limit) for q in queries}

    async def close(self):
        pass


class FakePrimary:
    """In-memory stand-in for ``PrimaryRegistryClient``."""

    def __init__(self, result=None, error=None):
        self.result = result or PrimaryLookupResult()
        self.error = error
        self.calls = []

    async def lookup_by_dependencies_and_installed(self, declared_deps, installed_skill_names, limit):
        self.calls.append((list(declared_deps), list(installed_skill_names), limit))
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self):
        pass


class RecordingMaterializer:
    """Writes a SKILL.md for each fetch; fails for sources listed in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def materialize(self, source, target_dir):
        from ace_skills.installer import FetchError

        self.calls.append((source, Path(target_dir)))
        if source in self.failing:
            raise FetchError(f"git clone {source} failed: repository not found")
        Path(target_dir).mkdir(parents=True)
        (Path(target_dir) / "SKILL.md").write_text(
            f"---\nname: {Path(target_dir).name}\n---\n", encoding="utf-8"
        )
