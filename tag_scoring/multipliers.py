"""Manual and contextual tag multipliers.

Contextual effects compose additively around a neutral 1.0:
``final = 1.0 + (m1 - 1.0) + (m2 - 1.0) + ...``. A tag may collect effects from
several subcontexts and several contexts, but a single pattern subcontext
contributes at most once however many of its patterns match.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from tag_scoring.config import ScoringConfig, default_scoring_config

MultiplierSource = Literal["manual", "contextual", "default"]


@dataclass(frozen=True, slots=True)
class ContextMembership:
    """A subcontext that a tag belongs to."""

    context: str
    subcontext: str
    multiplier: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "context": self.context,
            "subcontext": self.subcontext,
            "multiplier": self.multiplier,
        }


@dataclass(frozen=True, slots=True)
class ContextEffect:
    """Additive contribution of one matched subcontext."""

    context: str
    subcontext: str
    effect: float

    def to_dict(self) -> dict[str, Any]:
        return {"context": self.context, "subcontext": self.subcontext, "effect": self.effect}


@dataclass(frozen=True, slots=True)
class MultiplierBreakdown:
    """Traceable explanation of a tag's multiplier."""

    final_multiplier: float
    source: MultiplierSource
    manual_override: float | None = None
    contextual_effects: list[ContextEffect] = field(default_factory=list)
    calculation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_multiplier": self.final_multiplier,
            "source": self.source,
            "manual_override": self.manual_override,
            "contextual_effects": [item.to_dict() for item in self.contextual_effects],
            "calculation": self.calculation,
        }


@dataclass(frozen=True, slots=True)
class _CompiledRule:
    context: str
    subcontext: str
    label: str
    multiplier: float
    matches: Callable[[str, int | None], bool]

    @property
    def effect(self) -> float:
        return self.multiplier - 1.0


class MultiplierResolver:
    """Resolves per-tag multipliers from an immutable scoring configuration.

    Regexes are compiled once here; lookups only evaluate the compiled rules in
    the order their contexts and subcontexts were declared.
    """

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self._config = config or default_scoring_config()
        self._manual = dict(self._config.manual_multipliers)
        self._rules = _compile_rules(self._config)

    @property
    def config(self) -> ScoringConfig:
        return self._config

    def get_tag_multiplier(self, tag_name: str) -> float:
        """Return the manual override for ``tag_name`` or its contextual multiplier."""
        manual = self._manual.get(tag_name)
        if manual is not None:
            return manual
        return self.get_contextual_multiplier(tag_name)

    def get_contextual_multiplier(self, tag_name: str, category: int | None = None) -> float:
        """Return ``1.0`` plus the summed effects of every matching subcontext."""
        total_effect = 0.0
        found = False
        for rule in self._rules:
            if rule.matches(tag_name, category):
                total_effect += rule.effect
                found = True
        return 1.0 + total_effect if found else 1.0

    def get_tag_contexts(
        self, tag_name: str, category: int | None = None
    ) -> list[ContextMembership]:
        """List every subcontext that ``tag_name`` belongs to."""
        return [
            ContextMembership(
                context=rule.context,
                subcontext=rule.subcontext,
                multiplier=rule.multiplier,
            )
            for rule in self._rules
            if rule.matches(tag_name, category)
        ]

    def get_multiplier_breakdown(
        self, tag_name: str, category: int | None = None
    ) -> MultiplierBreakdown:
        """Explain how the multiplier for ``tag_name`` is derived."""
        manual = self._manual.get(tag_name)
        if manual is not None:
            return MultiplierBreakdown(
                final_multiplier=manual,
                source="manual",
                manual_override=manual,
            )

        effects = [
            ContextEffect(context=rule.context, subcontext=rule.label, effect=rule.effect)
            for rule in self._rules
            if rule.matches(tag_name, category)
        ]
        if not effects:
            return MultiplierBreakdown(final_multiplier=1.0, source="default")

        final = 1.0 + sum(item.effect for item in effects)
        joined = " + ".join(_format_number(item.effect) for item in effects)
        return MultiplierBreakdown(
            final_multiplier=final,
            source="contextual",
            contextual_effects=effects,
            calculation=f"1.0 + ({joined}) = {_format_number(final)}",
        )


def _compile_rules(config: ScoringConfig) -> list[_CompiledRule]:
    rules: list[_CompiledRule] = []
    for context in config.contexts:
        for subcontext in context.subcontexts:
            rules.append(
                _CompiledRule(
                    context=context.key,
                    subcontext=subcontext.name,
                    label=subcontext.name,
                    multiplier=subcontext.multiplier,
                    matches=_literal_predicate(frozenset(subcontext.tags)),
                )
            )
        for pattern_subcontext in context.pattern_subcontexts:
            rules.append(
                _CompiledRule(
                    context=context.key,
                    subcontext=pattern_subcontext.name,
                    label=f"{pattern_subcontext.name} (pattern)",
                    multiplier=pattern_subcontext.multiplier,
                    matches=_pattern_predicate(
                        [re.compile(item, re.IGNORECASE) for item in pattern_subcontext.patterns],
                        pattern_subcontext.category,
                    ),
                )
            )
    return rules


def _literal_predicate(tags: frozenset[str]) -> Callable[[str, int | None], bool]:
    def matches(tag_name: str, category: int | None) -> bool:
        _ = category
        return tag_name in tags

    return matches


def _pattern_predicate(
    patterns: list[re.Pattern[str]], required_category: int | None
) -> Callable[[str, int | None], bool]:
    def matches(tag_name: str, category: int | None) -> bool:
        # Without a category on either side the gate is not applied.
        if required_category is not None and category is not None:
            if required_category != category:
                return False
        return any(pattern.search(tag_name) for pattern in patterns)

    return matches


def _format_number(value: float) -> str:
    return f"{value:.6g}"
