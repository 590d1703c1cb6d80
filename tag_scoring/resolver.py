"""Guess-to-tag resolution: exact, alias, then fuzzy lookup."""

from __future__ import annotations

import logging
from typing import Protocol

from tag_scoring.repository import TagRecord, TagRepository

logger = logging.getLogger(__name__)

FUZZY_MATCH_THRESHOLD = 0.6


class TagLookup(Protocol):
    """Last-resort lookup consulted when the repository has no match."""

    async def lookup(self, name: str) -> TagRecord | None:
        """Return a tag record for ``name`` if the external source knows it."""


def normalize_query(query: str) -> str:
    return query.strip().lower()


def underscore_query(query: str) -> str:
    """Write runs of whitespace as single underscores, the way tag names are stored."""
    return "_".join(query.split())


class TagResolver:
    """Finds the canonical tag for a raw guess."""

    def __init__(
        self,
        repository: TagRepository,
        *,
        fallback: TagLookup | None = None,
        min_relevance: float = FUZZY_MATCH_THRESHOLD,
    ) -> None:
        self._repository = repository
        self._fallback = fallback
        self._min_relevance = min_relevance

    async def find_tag(self, query: str) -> TagRecord | None:
        """Resolve ``query`` to a tag record, or ``None`` when nothing matches.

        Each step runs only if the previous one missed: exact name, active
        alias (returning the alias target), fuzzy match above the relevance
        threshold, then the optional fallback lookup. The exact and alias
        steps also try the query with whitespace written as underscores, so
        "wolf ears" finds "wolf_ears". Repository errors propagate to the
        caller.
        """
        name = normalize_query(query)
        if not name:
            return None
        spellings = [name]
        underscored = underscore_query(name)
        if underscored != name:
            spellings.append(underscored)

        for spelling in spellings:
            record = await self._repository.find_exact(spelling)
            if record is not None:
                logger.debug("Exact match for %r", spelling)
                return record

        for spelling in spellings:
            record = await self._repository.find_by_alias(spelling)
            if record is not None:
                logger.debug("Alias %r resolved to %r", spelling, record.name)
                return record

        match = await self._repository.find_fuzzy(name)
        if match is not None:
            if match.relevance >= self._min_relevance:
                logger.debug(
                    "Fuzzy match %r for %r (relevance %.2f)",
                    match.record.name,
                    name,
                    match.relevance,
                )
                return match.record
            logger.debug(
                "Rejected fuzzy match %r for %r (relevance %.2f)",
                match.record.name,
                name,
                match.relevance,
            )

        if self._fallback is not None:
            return await self._fallback.lookup(name)
        return None
