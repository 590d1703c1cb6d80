from __future__ import annotations

import math

import pytest

from tag_scoring.categories import TagCategory
from tag_scoring.config import CategoryParameters, ScoringConfig
from tag_scoring.rarity import rarity_curve


def _config(**overrides: object) -> ScoringConfig:
    values: dict[str, object] = {
        "categories": {0: CategoryParameters(mu=2.0, sigma=0.5, weight=1.0, min_points=100)},
        "manual_multipliers": {},
        "contexts": (),
    }
    values.update(overrides)
    return ScoringConfig(**values)  # type: ignore[arg-type]


def test_rarity_peaks_at_one_on_mu() -> None:
    assert rarity_curve(100, 0, _config()) == pytest.approx(1.0)


def test_rarity_falls_off_symmetrically_in_log_space() -> None:
    config = _config()
    below = rarity_curve(10, 0, config)
    above = rarity_curve(1000, 0, config)

    assert below == pytest.approx(above)
    assert 0.0 < below < 1.0


def test_rarity_applies_power_exponent() -> None:
    raw = math.exp(-1 / (2 * 0.5**2))
    assert rarity_curve(1000, 0, _config()) == pytest.approx(raw**0.4)
    assert rarity_curve(1000, 0, _config(rarity_exponent=1.0)) == pytest.approx(raw)


def test_rarity_treats_zero_posts_as_one() -> None:
    config = _config()
    assert rarity_curve(0, 0, config) == rarity_curve(1, 0, config)


def test_unconfigured_category_uses_fallback_curve() -> None:
    config = _config()
    # Fallback mu is 2.5, so the curve peaks near 316 posts.
    assert rarity_curve(316, 42, config) == pytest.approx(1.0, abs=1e-6)
    assert rarity_curve(316, 42, config) > rarity_curve(10, 42, config)


def test_default_config_is_used_when_none_given() -> None:
    value = rarity_curve(10**2.3, TagCategory.SPECIES)
    assert value == pytest.approx(1.0, abs=1e-6)
