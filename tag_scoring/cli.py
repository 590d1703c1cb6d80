"""CLI entrypoint for tag-scoring."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from tag_scoring import __version__
from tag_scoring.calculator import ScoreCalculator
from tag_scoring.categories import TagCategory, parse_category
from tag_scoring.config import (
    AppConfig,
    default_config_template,
    load_app_config,
    resolve_category_parameters,
)
from tag_scoring.engine import ScoringEngine, TagScore
from tag_scoring.multipliers import MultiplierResolver
from tag_scoring.output import (
    render_breakdown,
    render_bulk,
    render_categories,
    render_curve_csv,
    render_detail,
    render_json,
    render_tag_score,
)
from tag_scoring.repository import InMemoryTagRepository, RepositoryError

app = typer.Typer(
    name="tag-scoring",
    no_args_is_help=True,
    help="Score tag guesses against a tag database snapshot.",
)

RepoOption = Annotated[Path, typer.Option(help="Project path used to find config files.")]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to config TOML file."),
]
FormatOption = Annotated[
    str | None, typer.Option(help="Output format: human|json.", show_default="human")
]
TagsOption = Annotated[
    Path | None, typer.Option("--tags", help="Tag export CSV (.csv or .csv.gz).")
]
AliasesOption = Annotated[
    Path | None, typer.Option("--aliases", help="Tag alias export CSV (.csv or .csv.gz).")
]
CategoryOption = Annotated[
    str | None, typer.Option("--category", "-c", help="Category name or index (0-8).")
]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log resolution details to stderr.")
    ] = False,
) -> None:
    """Root command callback."""
    _ = version
    configure_logging(verbose)


@app.command("score")
def score_command(
    guess: Annotated[str, typer.Argument(help="Tag guess to score.")],
    repo: RepoOption = Path("."),
    tags: TagsOption = None,
    aliases: AliasesOption = None,
    format: FormatOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Score a single tag guess."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _resolve_format(format, app_config)
    engine = _build_engine_or_raise(app_config, tags=tags, aliases=aliases)

    result = _score_or_exit(engine, guess)
    if output_format == "json":
        typer.echo(render_json(result.to_dict()))
        return
    typer.echo(render_tag_score(result))


@app.command("bulk")
def bulk_command(
    guesses: Annotated[list[str] | None, typer.Argument(help="Tag guesses to score.")] = None,
    stdin: Annotated[bool, typer.Option(help="Read one guess per line from stdin.")] = False,
    repo: RepoOption = Path("."),
    tags: TagsOption = None,
    aliases: AliasesOption = None,
    format: FormatOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Score many guesses at once."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _resolve_format(format, app_config)

    items = list(guesses or [])
    if stdin:
        items.extend(line.strip() for line in sys.stdin.read().splitlines() if line.strip())
    if not items:
        raise typer.BadParameter("Provide guesses as arguments or with --stdin.")

    engine = _build_engine_or_raise(app_config, tags=tags, aliases=aliases)
    result = asyncio.run(engine.score_bulk(items))
    if output_format == "json":
        typer.echo(render_json(result.to_dict()))
        return
    typer.echo(render_bulk(result))


@app.command("multiplier")
def multiplier_command(
    tag_name: Annotated[str, typer.Argument(help="Tag name to inspect.")],
    category: CategoryOption = None,
    repo: RepoOption = Path("."),
    format: FormatOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Show how a tag's multiplier is calculated."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _resolve_format(format, app_config)
    category_value = _parse_category_or_raise(category)

    resolver = MultiplierResolver(app_config.scoring)
    name = tag_name.strip().lower()
    breakdown = resolver.get_multiplier_breakdown(name, category_value)
    memberships = resolver.get_tag_contexts(name, category_value)

    if output_format == "json":
        payload = {
            "tag": name,
            "category": category_value,
            "breakdown": breakdown.to_dict(),
            "contexts": [item.to_dict() for item in memberships],
        }
        typer.echo(render_json(payload))
        return
    typer.echo(render_breakdown(name, breakdown, memberships))


@app.command("detail")
def detail_command(
    post_count: Annotated[int, typer.Argument(min=0, help="Tag post count.")],
    category: CategoryOption = None,
    repo: RepoOption = Path("."),
    format: FormatOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Show rarity, base and final score for a post count."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _resolve_format(format, app_config)
    category_value = _parse_category_or_raise(category) or 0

    detail = ScoreCalculator(app_config.scoring).get_detailed_scoring(post_count, category_value)
    if output_format == "json":
        payload = {"post_count": post_count, **detail.to_dict()}
        typer.echo(render_json(payload))
        return
    typer.echo(render_detail(post_count, detail))


@app.command("curve")
def curve_command(
    category: CategoryOption = None,
    points: Annotated[int, typer.Option(min=1, help="Number of samples.")] = 101,
    repo: RepoOption = Path("."),
    format: Annotated[str, typer.Option(help="Output format: csv|json.")] = "csv",
    config_file: ConfigOption = None,
) -> None:
    """Sample the scoring curve for a category at log-spaced post counts."""
    output_format = format.lower()
    if output_format not in {"csv", "json"}:
        raise typer.BadParameter("format must be one of: csv, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    category_value = _parse_category_or_raise(category) or 0
    calculator = ScoreCalculator(app_config.scoring)
    samples = calculator.sample_scoring_curve(category_value, points=points)

    if output_format == "json":
        payload = {
            "category": category_value,
            "parameters": resolve_category_parameters(
                app_config.scoring, category_value
            ).to_dict(),
            "samples": [item.to_dict() for item in samples],
        }
        typer.echo(render_json(payload))
        return
    typer.echo(render_curve_csv(samples))


@app.command("categories")
def categories_command(
    repo: RepoOption = Path("."),
    format: FormatOption = None,
    config_file: ConfigOption = None,
) -> None:
    """List scoring parameters for every category."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _resolve_format(format, app_config)
    items = [
        resolve_category_parameters(app_config.scoring, int(category))
        for category in TagCategory
    ]
    if output_format == "json":
        typer.echo(render_json({"categories": [item.to_dict() for item in items]}))
        return
    typer.echo(render_categories(items))


@app.command("config")
def config_command(
    repo: RepoOption = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: ConfigOption = None,
) -> None:
    """Show resolved configuration."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    payload = app_config.to_dict()

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    scoring = payload["scoring"]
    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- format: {payload['format']}",
        f"- data.tags: {payload['data']['tags']}",
        f"- data.aliases: {payload['data']['aliases']}",
        f"- max_points: {scoring['max_points']}",
        f"- default_min_points: {scoring['default_min_points']}",
        f"- rarity_exponent: {scoring['rarity_exponent']}",
        f"- progressive_scaling: {scoring['progressive_scaling']}",
        f"- manual multipliers: {len(scoring['manual_multipliers'])}",
        f"- contexts: {[item['key'] for item in scoring['contexts']]}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".tag-scoring.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


@app.command("config-validate")
def config_validate_command(
    repo: RepoOption = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Path to config TOML file to validate."),
    ] = Path(".tag-scoring.toml"),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate a config file and compile its multiplier rules."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    MultiplierResolver(app_config.scoring)
    payload = {
        "ok": True,
        "source": app_config.source,
        "contexts": [context.key for context in app_config.scoring.contexts],
        "manual_multipliers": len(app_config.scoring.manual_multipliers),
    }
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    typer.echo(
        "\n".join(
            [
                "Config is valid.",
                f"- source: {payload['source']}",
                f"- contexts: {payload['contexts']}",
                f"- manual_multipliers: {payload['manual_multipliers']}",
            ]
        )
    )


def main() -> None:
    """Console script entrypoint."""
    app()


def configure_logging(verbose: bool) -> None:
    """Send package logs to stderr; DEBUG when verbose, WARNING otherwise."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    package_logger = logging.getLogger("tag_scoring")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False


def _load_config_or_raise(repo: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _resolve_format(value: str | None, app_config: AppConfig) -> str:
    output_format = (value or app_config.format).lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    return output_format


def _parse_category_or_raise(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return parse_category(value, "--category")
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--category") from exc


def _build_engine_or_raise(
    app_config: AppConfig,
    *,
    tags: Path | None,
    aliases: Path | None,
) -> ScoringEngine:
    tags_path = tags if tags is not None else _optional_path(app_config.data.tags)
    aliases_path = aliases if aliases is not None else _optional_path(app_config.data.aliases)
    if tags_path is None:
        raise typer.BadParameter(
            "Provide --tags or set data.tags in the config file.", param_hint="--tags"
        )
    try:
        repository = InMemoryTagRepository.from_export(tags_path, aliases_path)
    except RepositoryError as exc:
        raise typer.BadParameter(str(exc), param_hint="--tags") from exc
    return ScoringEngine(repository, app_config.scoring)


def _score_or_exit(engine: ScoringEngine, guess: str) -> TagScore:
    try:
        return asyncio.run(engine.score_tag(guess))
    except RepositoryError as exc:
        typer.echo(f"Tag lookup failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _optional_path(value: str | None) -> Path | None:
    return Path(value) if value is not None else None
