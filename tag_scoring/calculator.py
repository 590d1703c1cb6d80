"""Score calculation from rarity, weights and multipliers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from tag_scoring.config import (
    ProgressiveScalingConfig,
    ResolvedCategoryParameters,
    ScoringConfig,
    default_scoring_config,
    resolve_category_parameters,
)
from tag_scoring.multipliers import MultiplierResolver
from tag_scoring.rarity import rarity_curve
from tag_scoring.repository import TagRecord

CURVE_SAMPLE_POINTS = 101
CURVE_SAMPLE_DIVISOR = 16.67


@dataclass(frozen=True, slots=True)
class DetailedScoring:
    """Score breakdown for a post count, before any tag-specific multiplier."""

    rarity_score: float
    base_score: float
    final_score: int
    parameters: ResolvedCategoryParameters

    def to_dict(self) -> dict[str, Any]:
        return {
            "rarity_score": self.rarity_score,
            "base_score": self.base_score,
            "final_score": self.final_score,
            "parameters": self.parameters.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class CurveSample:
    """One point of a sampled scoring curve."""

    post_count: int
    log_post_count: float
    rarity_score: float
    base_score: float
    final_score: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "post_count": self.post_count,
            "log_post_count": self.log_post_count,
            "rarity_score": self.rarity_score,
            "base_score": self.base_score,
            "final_score": self.final_score,
        }


class ScoreCalculator:
    """Turns a resolved tag record into integer points."""

    def __init__(
        self,
        config: ScoringConfig | None = None,
        multipliers: MultiplierResolver | None = None,
    ) -> None:
        self._config = config or (multipliers.config if multipliers else default_scoring_config())
        self._multipliers = multipliers or MultiplierResolver(self._config)

    @property
    def config(self) -> ScoringConfig:
        return self._config

    @property
    def multipliers(self) -> MultiplierResolver:
        return self._multipliers

    def calculate_tag_score(self, tag: TagRecord) -> int:
        """Score a tag.

        A ``manual_score`` wins outright. Otherwise the rarity curve places the
        tag between the category's min and max points, category weight and
        quality scale it, and the manual then contextual multipliers are applied
        with progressive scaling. The result is never below the category
        minimum; it may exceed ``max_points`` when multipliers boost it.
        """
        if tag.manual_score is not None:
            return tag.manual_score

        params = resolve_category_parameters(self._config, tag.category)
        rarity = rarity_curve(tag.post_count, tag.category, self._config)
        quality = tag.quality if tag.quality is not None else 1.0

        score = _base_score(params, rarity) * params.weight * quality

        manual_multiplier = self._multipliers.get_tag_multiplier(tag.name)
        contextual_multiplier = self._multipliers.get_contextual_multiplier(
            tag.name, tag.category
        )
        for multiplier in (manual_multiplier, contextual_multiplier):
            score = apply_multiplier(
                score,
                multiplier,
                min_points=params.min_points,
                max_points=params.max_points,
                scaling=self._config.progressive_scaling,
            )

        return max(params.min_points, round_half_up(score))

    def get_detailed_scoring(self, post_count: int, category: int) -> DetailedScoring:
        """Report rarity, base and final score for a post count in a category."""
        params = resolve_category_parameters(self._config, category)
        rarity = rarity_curve(post_count, category, self._config)
        base_score = _base_score(params, rarity)
        final_score = max(params.min_points, round_half_up(base_score * params.weight))
        return DetailedScoring(
            rarity_score=rarity,
            base_score=base_score,
            final_score=final_score,
            parameters=params,
        )

    def sample_scoring_curve(
        self,
        category: int,
        *,
        points: int = CURVE_SAMPLE_POINTS,
        divisor: float = CURVE_SAMPLE_DIVISOR,
    ) -> list[CurveSample]:
        """Sample the scoring curve at log-spaced post counts."""
        if points <= 0:
            raise ValueError(f"points must be positive, got {points}")
        if divisor <= 0:
            raise ValueError(f"divisor must be positive, got {divisor}")

        samples: list[CurveSample] = []
        for index in range(points):
            post_count = round_half_up(10 ** (index / divisor))
            detail = self.get_detailed_scoring(post_count, category)
            samples.append(
                CurveSample(
                    post_count=post_count,
                    log_post_count=math.log10(max(post_count, 1)),
                    rarity_score=detail.rarity_score,
                    base_score=detail.base_score,
                    final_score=detail.final_score,
                )
            )
        return samples


def apply_multiplier(
    score: float,
    multiplier: float,
    *,
    min_points: int,
    max_points: int,
    scaling: ProgressiveScalingConfig,
) -> float:
    """Apply one multiplier, bending it by where ``score`` sits in its range.

    Boosts keep most of their strength on low scores and reductions bite
    hardest on high scores. With scaling disabled the multiplier is linear.

    The score's position in ``[min_points, max_points]`` is clamped to
    ``[0, 1]`` before it is turned into a factor. Weight or quality can push a
    score past ``max_points``; unclamped, that would drive the factor above
    ``max_effect`` and turn a boost into a reduction. A score above the range
    is therefore treated as sitting at the top: boosts do nothing and
    reductions apply at ``max_effect``.
    """
    if multiplier == 1.0:
        return score
    if not scaling.enabled:
        return score * multiplier

    span = max_points - min_points
    normalized = (score - min_points) / span if span > 0 else 1.0
    normalized = min(1.0, max(0.0, normalized))
    factor = scaling.min_effect + normalized * (scaling.max_effect - scaling.min_effect)

    if multiplier > 1.0:
        boost = (multiplier - 1.0) * (1.0 - factor)
        return score * (1.0 + boost)
    reduction = (1.0 - multiplier) * factor
    return score * (1.0 - reduction)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _base_score(params: ResolvedCategoryParameters, rarity: float) -> float:
    return params.min_points + (params.max_points - params.min_points) * rarity
