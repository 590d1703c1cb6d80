"""Output rendering."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import click

from tag_scoring import __version__
from tag_scoring.calculator import CurveSample, DetailedScoring
from tag_scoring.categories import category_name
from tag_scoring.config import ResolvedCategoryParameters
from tag_scoring.engine import BulkScoreResult, TagScore
from tag_scoring.multipliers import ContextMembership, MultiplierBreakdown


def render_tag_score(result: TagScore) -> str:
    """Render a single scored guess."""
    if not result.is_correct:
        return click.style(f'No tag found matching "{result.guess}"', fg="red", bold=True)

    lines = [
        click.style(f"Tag found: {result.actual_tag}", fg="green", bold=True),
        f"- category: {category_name(result.category)} ({result.category})",
        f"- score: {result.score} points",
        f'- guess: "{result.guess}" -> {result.actual_tag}',
    ]
    return "\n".join(lines)


def render_bulk(result: BulkScoreResult) -> str:
    """Render a batch of scored guesses with a total line."""
    correct = [item for item in result.results if item.is_correct]
    total_points = sum(item.score for item in correct)
    lines = [
        click.style(
            f"Scored {result.successful}/{result.total} guesses: "
            f"{len(correct)} correct, {total_points} points",
            bold=True,
        )
    ]
    for item in result.results:
        if item.is_correct:
            lines.append(f"+ {item.guess} -> {item.actual_tag}: {item.score}")
        else:
            lines.append(click.style(f"- {item.guess}: no match", fg="red"))
    return "\n".join(lines)


def render_breakdown(
    tag_name: str,
    breakdown: MultiplierBreakdown,
    memberships: list[ContextMembership],
) -> str:
    """Render how a tag's multiplier is derived."""
    lines = [
        click.style(
            f"Multiplier for {tag_name}: {breakdown.final_multiplier:g} ({breakdown.source})",
            bold=True,
        )
    ]
    if breakdown.manual_override is not None:
        lines.append(f"- manual override: {breakdown.manual_override:g}")
    for effect in breakdown.contextual_effects:
        signed = f"+{effect.effect:g}" if effect.effect >= 0 else f"{effect.effect:g}"
        lines.append(f"- {effect.context}/{effect.subcontext}: {signed}")
    if breakdown.calculation:
        lines.append(f"- calculation: {breakdown.calculation}")
    if memberships and breakdown.source == "manual":
        names = ", ".join(f"{item.context}/{item.subcontext}" for item in memberships)
        lines.append(f"- contexts (still applied by category): {names}")
    return "\n".join(lines)


def render_detail(post_count: int, detail: DetailedScoring) -> str:
    """Render the detailed scoring for one post count."""
    params = detail.parameters
    lines = [
        click.style(
            f"{category_name(params.category)} tag with {post_count} posts: "
            f"{detail.final_score} points",
            bold=True,
        ),
        f"- rarity: {detail.rarity_score:.4f}",
        f"- base score: {detail.base_score:.1f}",
        f"- mu: {params.mu}, sigma: {params.sigma}, weight: {params.weight}",
        f"- points range: {params.min_points}-{params.max_points}",
    ]
    if not params.configured:
        lines.append(click.style("- category not configured, using fallbacks", fg="yellow"))
    return "\n".join(lines)


def render_categories(items: list[ResolvedCategoryParameters]) -> str:
    """Render the per-category parameter table."""
    lines = [click.style("Category parameters:", bold=True)]
    for params in items:
        sweet_spot = round(10**params.mu)
        lines.append(
            f"- {params.category} {category_name(params.category)}: "
            f"mu={params.mu} (~{sweet_spot} posts), sigma={params.sigma}, "
            f"weight={params.weight}, min_points={params.min_points}"
        )
    return "\n".join(lines)


def render_curve_csv(samples: list[CurveSample]) -> str:
    """Render curve samples as CSV for spreadsheet import."""
    lines = ["PostCount,LogPostCount,RarityScore,BaseScore,FinalScore"]
    for sample in samples:
        lines.append(
            f"{sample.post_count},{sample.log_post_count:.3f},{sample.rarity_score:.3f},"
            f"{round(sample.base_score)},{sample.final_score}"
        )
    return "\n".join(lines)


def render_json(payload: dict[str, Any]) -> str:
    """Render stable JSON output with a meta block."""
    return json.dumps(build_json_payload(payload), sort_keys=True)


def build_json_payload(payload: dict[str, Any]) -> dict[str, Any]:
    meta = {
        "generated_at": datetime.now(tz=UTC)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z"),
        "version": __version__,
    }
    return {**payload, "meta": {**meta, **payload.get("meta", {})}}
