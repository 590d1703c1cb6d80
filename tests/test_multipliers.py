from __future__ import annotations

import pytest

from tag_scoring.categories import TagCategory
from tag_scoring.config import Context, PatternSubcontext, ScoringConfig, Subcontext
from tag_scoring.multipliers import MultiplierResolver


def _body_context() -> Context:
    return Context(
        key="body",
        name="Body",
        subcontexts=(
            Subcontext(name="paws", multiplier=1.2, tags=("paw_pads", "toe_beans")),
            Subcontext(name="common", multiplier=0.9, tags=("paw_pads",)),
        ),
    )


def test_manual_override_wins_over_context() -> None:
    resolver = MultiplierResolver()
    assert resolver.get_tag_multiplier("plantigrade") == 1.4
    assert resolver.get_tag_multiplier("simple_background") == 0.5


def test_unknown_tag_is_neutral() -> None:
    resolver = MultiplierResolver()
    assert resolver.get_tag_multiplier("wolf") == 1.0
    assert resolver.get_contextual_multiplier("wolf", TagCategory.GENERAL) == 1.0


def test_contextual_effects_compose_additively() -> None:
    config = ScoringConfig(manual_multipliers={}, contexts=(_body_context(),))
    resolver = MultiplierResolver(config)

    assert resolver.get_contextual_multiplier("paw_pads") == pytest.approx(1.1)
    assert resolver.get_contextual_multiplier("toe_beans") == pytest.approx(1.2)
    # No manual override, so the tag multiplier falls back to contexts.
    assert resolver.get_tag_multiplier("paw_pads") == pytest.approx(1.1)


def test_color_pattern_is_gated_by_category() -> None:
    resolver = MultiplierResolver()

    assert resolver.get_contextual_multiplier("red_fur", TagCategory.GENERAL) == 0.5
    assert resolver.get_contextual_multiplier("red_fur", TagCategory.SPECIES) == 1.0
    assert resolver.get_contextual_multiplier("red_fur") == 0.5


def test_pattern_matching_ignores_case() -> None:
    resolver = MultiplierResolver()
    assert resolver.get_contextual_multiplier("Red_Fur", TagCategory.GENERAL) == 0.5


def test_pattern_subcontext_counts_once_when_several_patterns_match() -> None:
    config = ScoringConfig(
        manual_multipliers={},
        contexts=(
            Context(
                key="fur",
                name="Fur",
                pattern_subcontexts=(
                    PatternSubcontext(name="fur_words", multiplier=0.5, patterns=("red", "fur")),
                ),
            ),
        ),
    )
    resolver = MultiplierResolver(config)
    assert resolver.get_contextual_multiplier("red_fur") == 0.5


def test_tag_contexts_lists_every_membership() -> None:
    config = ScoringConfig(manual_multipliers={}, contexts=(_body_context(),))
    memberships = MultiplierResolver(config).get_tag_contexts("paw_pads")

    assert [(item.context, item.subcontext, item.multiplier) for item in memberships] == [
        ("body", "paws", 1.2),
        ("body", "common", 0.9),
    ]


def test_breakdown_for_manual_override() -> None:
    breakdown = MultiplierResolver().get_multiplier_breakdown("living_vehicle")

    assert breakdown.source == "manual"
    assert breakdown.final_multiplier == 4.0
    assert breakdown.manual_override == 4.0
    assert breakdown.contextual_effects == []


def test_breakdown_for_contextual_tag() -> None:
    config = ScoringConfig(manual_multipliers={}, contexts=(_body_context(),))
    breakdown = MultiplierResolver(config).get_multiplier_breakdown("paw_pads")

    assert breakdown.source == "contextual"
    assert breakdown.final_multiplier == pytest.approx(1.1)
    assert [item.subcontext for item in breakdown.contextual_effects] == ["paws", "common"]
    assert breakdown.calculation == "1.0 + (0.2 + -0.1) = 1.1"


def test_breakdown_labels_pattern_subcontexts() -> None:
    breakdown = MultiplierResolver().get_multiplier_breakdown("red_fur", TagCategory.GENERAL)

    assert breakdown.source == "contextual"
    assert breakdown.contextual_effects[0].subcontext == "color_detection (pattern)"
    assert breakdown.calculation == "1.0 + (-0.5) = 0.5"


def test_breakdown_defaults_to_neutral() -> None:
    breakdown = MultiplierResolver().get_multiplier_breakdown("wolf")
    assert breakdown.source == "default"
    assert breakdown.final_multiplier == 1.0
    assert breakdown.calculation is None
