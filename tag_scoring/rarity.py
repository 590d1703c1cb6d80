"""Rarity curve: bell-shaped reward over log10(post_count)."""

from __future__ import annotations

import math

from tag_scoring.config import ScoringConfig, default_scoring_config, resolve_category_parameters


def rarity_curve(post_count: int, category: int, config: ScoringConfig | None = None) -> float:
    """Map a tag's post count to a rarity value in (0, 1].

    The curve peaks at exactly 1.0 when ``log10(post_count)`` equals the
    category's ``mu`` and falls off with spread ``sigma``. The configured power
    exponent flattens the falloff so mid-range tags keep more of the reward.
    A post count of zero is treated as one.
    """
    active = config or default_scoring_config()
    params = resolve_category_parameters(active, category)
    x = math.log10(max(post_count, 1))
    raw = math.exp(-((x - params.mu) ** 2) / (2 * params.sigma**2))
    return raw**active.rarity_exponent
