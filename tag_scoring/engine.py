"""Scoring engine facade."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from tag_scoring.calculator import DetailedScoring, ScoreCalculator
from tag_scoring.config import ScoringConfig, default_scoring_config
from tag_scoring.multipliers import MultiplierResolver
from tag_scoring.repository import TagRepository
from tag_scoring.resolver import TagLookup, TagResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TagScore:
    """Outcome of scoring one guess."""

    guess: str
    score: int
    is_correct: bool
    actual_tag: str | None = None
    category: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "guess": self.guess,
            "actual_tag": self.actual_tag,
            "score": self.score,
            "is_correct": self.is_correct,
            "category": self.category,
        }


@dataclass(slots=True)
class BulkScoreResult:
    """Scores for a batch of guesses; failed lookups are omitted."""

    results: list[TagScore] = field(default_factory=list)
    successful: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [item.to_dict() for item in self.results],
            "successful": self.successful,
            "total": self.total,
        }


class ScoringEngine:
    """Resolves guesses against a tag repository and scores them."""

    def __init__(
        self,
        repository: TagRepository,
        config: ScoringConfig | None = None,
        *,
        fallback: TagLookup | None = None,
    ) -> None:
        self._config = config or default_scoring_config()
        self._multipliers = MultiplierResolver(self._config)
        self._calculator = ScoreCalculator(self._config, self._multipliers)
        self._resolver = TagResolver(repository, fallback=fallback)

    @property
    def config(self) -> ScoringConfig:
        return self._config

    @property
    def calculator(self) -> ScoreCalculator:
        return self._calculator

    @property
    def multipliers(self) -> MultiplierResolver:
        return self._multipliers

    async def score_tag(self, guess: str) -> TagScore:
        """Score a single guess; an unknown tag is an incorrect guess worth 0."""
        tag = await self._resolver.find_tag(guess)
        if tag is None:
            return TagScore(guess=guess, score=0, is_correct=False)

        score = self._calculator.calculate_tag_score(tag)
        return TagScore(
            guess=guess,
            actual_tag=tag.name,
            score=score,
            is_correct=True,
            category=tag.category,
        )

    async def score_bulk(self, guesses: list[str]) -> BulkScoreResult:
        """Score guesses concurrently, keeping input order and dropping failures."""
        scored = await asyncio.gather(*(self._score_or_none(guess) for guess in guesses))
        results = [item for item in scored if item is not None]
        return BulkScoreResult(results=results, successful=len(results), total=len(guesses))

    def get_detailed_scoring(self, post_count: int, category: int) -> DetailedScoring:
        return self._calculator.get_detailed_scoring(post_count, category)

    async def _score_or_none(self, guess: str) -> TagScore | None:
        try:
            return await self.score_tag(guess)
        except Exception as exc:
            logger.warning("Failed to score tag %r: %s", guess, exc)
            return None
