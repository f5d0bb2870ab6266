"""
Registry clients.

Two independent sources of skill suggestions:

* the primary suggestion API, a single structured lookup that classifies
  every returned skill server-side, and
* the skills directory, offering keyword search and fuzzy resolution of
  installed skill names to their registry source.

The primary client raises :class:`RegistryError` on any failure so the
caller can decide how to degrade.  The directory client is best-effort: every
call logs its failure and returns an empty result.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from . import __version__
from .models import DirectoryHit, FuzzyMatch, MatchType, PrimaryLookupResult, Skill
from .settings import Settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_SUGGEST_PATH = "/api/v1/skills/suggest"
_SEARCH_PATH = "/api/search"
_FUZZY_MATCH_PATH = "/api/skills/search"
_USER_AGENT = f"ace-skills/{__version__}"


class RegistryError(Exception):
    """The primary registry failed to produce a usable answer."""


# ---------------------------------------------------------------------------
# Shared client plumbing
# ---------------------------------------------------------------------------

class _RegistryClient:
    """Base class owning (or borrowing) an ``httpx.AsyncClient``."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings or Settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=self._settings.request_timeout,
            headers={"User-Agent": _USER_AGENT},
        )

    # -- context manager ------------------------------------------------------

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    @property
    def _timeout(self) -> float:
        return self._settings.request_timeout


# ---------------------------------------------------------------------------
# Primary suggestion API
# ---------------------------------------------------------------------------

def _parse_primary_skill(raw: Dict[str, Any]) -> Skill:
    packages = _string_list(raw.get("packages"))
    return Skill(
        name=raw["name"],
        title=raw.get("title") or "",
        description=raw.get("description"),
        source=raw.get("repo") or raw.get("source"),
        installs=raw.get("installs") or 0,
        associated_packages=list(dict.fromkeys(packages)),
        match_type=MatchType.from_wire(raw.get("match_type", "package_json")),
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


class PrimaryRegistryClient(_RegistryClient):
    """Client for the structured suggestion API.

    Usage::

        async with PrimaryRegistryClient(settings) as primary:
            result = await primary.lookup_by_dependencies_and_installed(
                ["react"], ["test-writer"], limit=10
            )
    """

    @property
    def base_url(self) -> str:
        return self._settings.api_base_url.rstrip("/")

    async def lookup_by_dependencies_and_installed(
        self,
        declared_deps: Sequence[str],
        installed_skill_names: Sequence[str],
        limit: int,
    ) -> PrimaryLookupResult:
        """Return skills matching declared dependencies and installed skills.

        Raises :class:`RegistryError` on transport, HTTP-status or
        payload-shape failure.
        """
        payload = {
            "packages": list(declared_deps),
            "installed_skills": list(installed_skill_names),
            "limit": limit,
        }
        try:
            resp = await self._client.post(
                f"{self.base_url}{_SUGGEST_PATH}",
                json=payload,
                timeout=self._timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as exc:
            raise RegistryError(f"Suggestion API timed out: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise RegistryError(
                f"Suggestion API returned HTTP {exc.response.status_code}"
            ) from exc
        except Exception as exc:
            raise RegistryError(f"Suggestion API request failed: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("skills"), list):
            raise RegistryError("Suggestion API returned an unexpected payload")

        skills: List[Skill] = []
        for raw in data["skills"]:
            if not isinstance(raw, dict):
                logger.debug("Skipping malformed suggestion entry %r", raw)
                continue
            try:
                skills.append(_parse_primary_skill(raw))
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                logger.debug("Skipping malformed suggestion entry %r: %s", raw, exc)

        total = data.get("total")
        result = PrimaryLookupResult(
            skills=skills,
            total=total if isinstance(total, int) and total >= 0 else len(skills),
            matched_packages=_string_list(data.get("matched_packages")),
            matched_installed_skills=_string_list(data.get("matched_installed_skills")),
        )
        logger.debug(
            "Primary lookup returned %d skill(s) (total=%d)", len(result.skills), result.total
        )
        return result


# ---------------------------------------------------------------------------
# Skills directory (keyword search + fuzzy match)
# ---------------------------------------------------------------------------

class SkillsDirectoryClient(_RegistryClient):
    """Best-effort client for the public skills directory."""

    @property
    def base_url(self) -> str:
        return self._settings.skills_api_url.rstrip("/")

    async def search_by_keyword(self, query: str, limit: int) -> List[DirectoryHit]:
        """Free-text search.  Returns ``[]`` on any failure."""
        hits: List[DirectoryHit] = []
        try:
            resp = await self._client.get(
                f"{self.base_url}{_SEARCH_PATH}",
                params={"q": query, "limit": limit},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            data = resp.json()
            entries = data.get("skills", []) if isinstance(data, dict) else []
            for entry in entries:
                try:
                    hits.append(DirectoryHit.model_validate(entry))
                except ValidationError as exc:
                    logger.debug("Skipping malformed search hit %r: %s", entry, exc)
        except httpx.TimeoutException:
            logger.warning("Skills directory timed out for query %r", query)
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Skills directory HTTP %s for %r", exc.response.status_code, query
            )
        except Exception:
            logger.exception("Unexpected error searching skills directory for %r", query)
        return hits[:limit] if limit > 0 else hits

    async def fuzzy_match_names(self, names: Iterable[str]) -> Dict[str, Optional[FuzzyMatch]]:
        """Resolve installed skill names to their likely registry source.

        Every requested name is present in the result; unresolved names map
        to ``None``.  Empty input makes no request.  Returns ``{}`` on failure.
        """
        names = list(dict.fromkeys(names))
        if not names:
            return {}

        try:
            resp = await self._client.post(
                f"{self.base_url}{_FUZZY_MATCH_PATH}",
                json={"skills": names},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException:
            logger.warning("Skills directory fuzzy match timed out")
            return {}
        except httpx.HTTPStatusError as exc:
            logger.warning("Skills directory fuzzy match HTTP %s", exc.response.status_code)
            return {}
        except Exception:
            logger.exception("Unexpected error in skills directory fuzzy match")
            return {}

        raw_matches = data.get("matches") if isinstance(data, dict) else None
        if not isinstance(raw_matches, dict):
            logger.warning("Skills directory fuzzy match returned an unexpected payload")
            return {}

        matches: Dict[str, Optional[FuzzyMatch]] = {}
        for name in names:
            raw = raw_matches.get(name)
            if raw is None:
                matches[name] = None
                continue
            try:
                matches[name] = FuzzyMatch.model_validate(raw)
            except ValidationError as exc:
                logger.debug("Skipping malformed fuzzy match for %r: %s", name, exc)
                matches[name] = None
        return matches

    async def batch_search(
        self, queries: Iterable[str], per_query_limit: int
    ) -> Dict[str, List[DirectoryHit]]:
        """Keyword-search every query with bounded concurrency.

        At most ``search_batch_size`` requests are in flight; batches are
        separated by ``search_batch_delay`` seconds.  Keys keep input order.
        """
        unique = list(dict.fromkeys(queries))
        results: Dict[str, List[DirectoryHit]] = {}
        batch_size = max(1, self._settings.search_batch_size)

        for start in range(0, len(unique), batch_size):
            if start and self._settings.search_batch_delay > 0:
                await asyncio.sleep(self._settings.search_batch_delay)

            batch = unique[start:start + batch_size]
            tasks = [self.search_by_keyword(query, per_query_limit) for query in batch]
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)

            for query, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.warning("Keyword search for %r failed: %s", query, outcome)
                    results[query] = []
                else:
                    results[query] = outcome

        return results
