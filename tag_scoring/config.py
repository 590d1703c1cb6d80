"""Configuration loading for tag-scoring."""

from __future__ import annotations

import logging
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from tag_scoring.categories import TagCategory, category_name, parse_category

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (".tag-scoring.toml", "tag-scoring.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("tag_scoring", "tag-scoring")

FALLBACK_MU = 2.5
FALLBACK_SIGMA = 1.0
FALLBACK_WEIGHT = 1.0
DEFAULT_MIN_POINTS = 100
DEFAULT_MAX_POINTS = 10000
DEFAULT_RARITY_EXPONENT = 0.4


@dataclass(frozen=True, slots=True)
class CategoryParameters:
    """Rarity curve and weighting parameters for one tag category."""

    mu: float = FALLBACK_MU
    sigma: float = FALLBACK_SIGMA
    weight: float = FALLBACK_WEIGHT
    min_points: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mu": self.mu,
            "sigma": self.sigma,
            "weight": self.weight,
            "min_points": self.min_points,
        }


@dataclass(frozen=True, slots=True)
class ResolvedCategoryParameters:
    """Category parameters with every default substituted."""

    category: int
    mu: float
    sigma: float
    weight: float
    min_points: int
    max_points: int
    configured: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "name": category_name(self.category),
            "mu": self.mu,
            "sigma": self.sigma,
            "category_weight": self.weight,
            "min_points": self.min_points,
            "max_points": self.max_points,
            "configured": self.configured,
        }


@dataclass(frozen=True, slots=True)
class Subcontext:
    """Explicit list of tags sharing a multiplier."""

    name: str
    multiplier: float
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "multiplier": self.multiplier, "tags": list(self.tags)}


@dataclass(frozen=True, slots=True)
class PatternSubcontext:
    """Regex-matched tags sharing a multiplier, optionally gated by category."""

    name: str
    multiplier: float
    patterns: tuple[str, ...] = ()
    category: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "multiplier": self.multiplier,
            "patterns": list(self.patterns),
            "category": self.category,
        }


@dataclass(frozen=True, slots=True)
class Context:
    """Named group of contextual multiplier rules."""

    key: str
    name: str
    description: str = ""
    subcontexts: tuple[Subcontext, ...] = ()
    pattern_subcontexts: tuple[PatternSubcontext, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "subcontexts": [item.to_dict() for item in self.subcontexts],
            "pattern_subcontexts": [item.to_dict() for item in self.pattern_subcontexts],
        }


@dataclass(frozen=True, slots=True)
class ProgressiveScalingConfig:
    """How strongly multipliers bend a score depending on its position in range.

    ``min_effect`` applies to scores at the category minimum and ``max_effect``
    to scores at the maximum. Equal values give linear scaling at that strength.
    """

    enabled: bool = True
    min_effect: float = 0.2
    max_effect: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "min_effect": self.min_effect,
            "max_effect": self.max_effect,
        }


COLOR_PATTERN = (
    "(red|blue|green|yellow|orange|purple|pink|brown|black|white|grey|gray|tan|beige|"
    "cream|gold|silver|bronze|crimson|scarlet|maroon|navy|teal|cyan|aqua|lime|olive|"
    "magenta|violet|indigo|turquoise|amber|coral|salmon|peach|lavender|mint|emerald|"
    "ruby|sapphire|topaz|pearl|ivory|ebony|charcoal|slate|ash|copper|brass|platinum|"
    "rose|cherry|wine|burgundy|mahogany|chestnut|blonde|auburn|sandy|dusty|pale|light|"
    "dark|bright|deep|vivid|muted|pastel|neon|metallic|iridescent|rainbow|multicolored|"
    "multi_colored|two_tone|tri_color|spotted|striped|albino)"
)

DEFAULT_CATEGORY_PARAMETERS: dict[int, CategoryParameters] = {
    TagCategory.GENERAL: CategoryParameters(mu=2.5, sigma=0.621, weight=1.15, min_points=100),
    TagCategory.ARTIST: CategoryParameters(mu=1.8, sigma=1.0, weight=0.4, min_points=800),
    TagCategory.CONTRIBUTOR: CategoryParameters(mu=2.2, sigma=0.6, weight=1.2, min_points=2000),
    TagCategory.COPYRIGHT: CategoryParameters(mu=1.9, sigma=0.9, weight=1.2, min_points=1000),
    TagCategory.CHARACTER: CategoryParameters(mu=2.0, sigma=1.3, weight=1.0, min_points=1500),
    TagCategory.SPECIES: CategoryParameters(mu=2.3, sigma=0.4, weight=1.3, min_points=800),
    TagCategory.INVALID: CategoryParameters(mu=1.0, sigma=0.5, weight=0.5, min_points=1000),
    TagCategory.META: CategoryParameters(mu=3.2, sigma=0.5, weight=0.6, min_points=925),
    TagCategory.LORE: CategoryParameters(mu=3.8, sigma=0.8, weight=0.4, min_points=725),
}

DEFAULT_MANUAL_MULTIPLIERS: dict[str, float] = {
    # body structure
    "plantigrade": 1.4,
    "digitigrade": 1.3,
    "unguligrade": 1.6,
    "proboscis": 3.0,
    # very common general tags
    "looking_at_viewer": 0.6,
    "simple_background": 0.5,
    "white_background": 0.5,
    "leg_fur": 0.5,
    # art style
    "digital_media_(artwork)": 0.7,
    "shaded": 0.8,
    # novelty
    "furry_logic": 0.8,
    "what": 3.0,
    "why": 0.8,
    "living_vehicle": 4.0,
}

DEFAULT_CONTEXTS: tuple[Context, ...] = (
    Context(
        key="color",
        name="Color Tags",
        description="Color words across features and objects (General category only)",
        pattern_subcontexts=(
            PatternSubcontext(
                name="color_detection",
                multiplier=0.5,
                patterns=(COLOR_PATTERN,),
                category=int(TagCategory.GENERAL),
            ),
        ),
    ),
)


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    """Immutable scoring configuration injected into the engine.

    Category and manual multiplier tables are copied into read-only mappings on
    construction, so later changes to the source dicts do not leak in.
    """

    max_points: int = DEFAULT_MAX_POINTS
    default_min_points: int = DEFAULT_MIN_POINTS
    rarity_exponent: float = DEFAULT_RARITY_EXPONENT
    categories: Mapping[int, CategoryParameters] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_PARAMETERS)
    )
    manual_multipliers: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_MANUAL_MULTIPLIERS)
    )
    contexts: tuple[Context, ...] = DEFAULT_CONTEXTS
    progressive_scaling: ProgressiveScalingConfig = field(
        default_factory=ProgressiveScalingConfig
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "categories", MappingProxyType(dict(self.categories)))
        object.__setattr__(
            self, "manual_multipliers", MappingProxyType(dict(self.manual_multipliers))
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_points": self.max_points,
            "default_min_points": self.default_min_points,
            "rarity_exponent": self.rarity_exponent,
            "categories": {
                category_name(key): value.to_dict()
                for key, value in sorted(self.categories.items())
            },
            "manual_multipliers": dict(self.manual_multipliers),
            "contexts": [item.to_dict() for item in self.contexts],
            "progressive_scaling": self.progressive_scaling.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class DataConfig:
    """Tag database export locations."""

    tags: str | None = None
    aliases: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"tags": self.tags, "aliases": self.aliases}


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    format: str = "human"
    data: DataConfig = field(default_factory=DataConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "data": self.data.to_dict(),
            "scoring": self.scoring.to_dict(),
            "source": self.source,
        }


def default_scoring_config() -> ScoringConfig:
    """Return the built-in scoring configuration."""
    return ScoringConfig()


def resolve_category_parameters(
    config: ScoringConfig, category: int
) -> ResolvedCategoryParameters:
    """Return parameters for ``category``, substituting fallbacks when unconfigured."""
    params = config.categories.get(category)
    if params is None:
        logger.debug("No scoring parameters for category %s, using fallbacks", category)
        return ResolvedCategoryParameters(
            category=category,
            mu=FALLBACK_MU,
            sigma=FALLBACK_SIGMA,
            weight=FALLBACK_WEIGHT,
            min_points=config.default_min_points,
            max_points=config.max_points,
            configured=False,
        )
    min_points = params.min_points if params.min_points is not None else config.default_min_points
    return ResolvedCategoryParameters(
        category=category,
        mu=params.mu,
        sigma=params.sigma,
        weight=params.weight,
        min_points=min_points,
        max_points=config.max_points,
        configured=True,
    )


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or repository-local files with precedence."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved), base_dir=resolved.parent)

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved), base_dir=repo)

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path), base_dir=repo)

    return AppConfig()


def default_config_template() -> str:
    """Return a starter config template to customize."""
    return "\n".join(
        [
            'format = "human"',
            "max_points = 10000",
            "default_min_points = 100",
            "rarity_exponent = 0.4",
            "",
            "[data]",
            'tags = "tags.csv.gz"',
            'aliases = "tag_aliases.csv.gz"',
            "",
            "[categories.general]",
            "mu = 2.5",
            "sigma = 0.621",
            "weight = 1.15",
            "min_points = 100",
            "",
            "[categories.lore]",
            "mu = 3.8",
            "sigma = 0.8",
            "weight = 0.4",
            "min_points = 725",
            "",
            "[progressive_scaling]",
            "enabled = true",
            "min_effect = 0.2",
            "max_effect = 1.0",
            "",
            "[multipliers]",
            "plantigrade = 1.4",
            "simple_background = 0.5",
            "living_vehicle = 4.0",
            "",
            "[[contexts]]",
            'key = "color"',
            'name = "Color Tags"',
            'description = "Color words (General category only)"',
            "pattern_subcontexts = [",
            (
                '  { name = "color_detection", multiplier = 0.5, '
                'patterns = ["(red|blue|green|black|white)"], category = "general" },'
            ),
            "]",
            "subcontexts = [",
            '  # { name = "body_shape", multiplier = 1.2, tags = ["plantigrade"] },',
            "]",
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str, base_dir: Path) -> AppConfig:
    data_mapping = _as_table(mapping.get("data"), "data")

    raw_format = mapping.get("format", "human")
    format_value = str(raw_format).lower()
    if format_value not in {"human", "json"}:
        format_value = "human"

    return AppConfig(
        format=format_value,
        data=DataConfig(
            tags=_as_path_or_none(data_mapping.get("tags"), "data.tags", base_dir),
            aliases=_as_path_or_none(data_mapping.get("aliases"), "data.aliases", base_dir),
        ),
        scoring=_parse_scoring_config(mapping),
        source=source,
    )


def _parse_scoring_config(mapping: dict[str, Any]) -> ScoringConfig:
    max_points = _as_int(mapping.get("max_points", DEFAULT_MAX_POINTS), "max_points")
    default_min = _as_int(
        mapping.get("default_min_points", DEFAULT_MIN_POINTS), "default_min_points"
    )
    exponent = _as_float(
        mapping.get("rarity_exponent", DEFAULT_RARITY_EXPONENT), "rarity_exponent"
    )
    if default_min < 0:
        raise ValueError("default_min_points must be >= 0")
    if max_points <= default_min:
        raise ValueError("max_points must be greater than default_min_points")
    if exponent <= 0:
        raise ValueError("rarity_exponent must be > 0")

    categories = _parse_categories(
        _as_table(mapping.get("categories"), "categories"), max_points=max_points
    )

    if "multipliers" in mapping:
        manual = _parse_multiplier_mapping(mapping.get("multipliers"), "multipliers")
    else:
        manual = dict(DEFAULT_MANUAL_MULTIPLIERS)

    if "contexts" in mapping:
        contexts = _parse_contexts(mapping.get("contexts"))
    else:
        contexts = DEFAULT_CONTEXTS

    return ScoringConfig(
        max_points=max_points,
        default_min_points=default_min,
        rarity_exponent=exponent,
        categories=categories,
        manual_multipliers=manual,
        contexts=contexts,
        progressive_scaling=_parse_progressive_scaling(
            _as_table(mapping.get("progressive_scaling"), "progressive_scaling")
        ),
    )


def _parse_categories(value: dict[str, Any], *, max_points: int) -> dict[int, CategoryParameters]:
    categories = dict(DEFAULT_CATEGORY_PARAMETERS)
    for raw_key, raw_params in value.items():
        field_name = f"categories.{raw_key}"
        category = parse_category(raw_key, field_name)
        params = _as_table(raw_params, field_name)
        base = categories.get(category, CategoryParameters())

        sigma = _as_float(params.get("sigma", base.sigma), f"{field_name}.sigma")
        if sigma <= 0:
            raise ValueError(f"{field_name}.sigma must be > 0")
        weight = _as_float(params.get("weight", base.weight), f"{field_name}.weight")
        if weight < 0:
            raise ValueError(f"{field_name}.weight must be non-negative")
        raw_min = params.get("min_points", base.min_points)
        min_points = None if raw_min is None else _as_int(raw_min, f"{field_name}.min_points")
        if min_points is not None and not 0 <= min_points < max_points:
            raise ValueError(f"{field_name}.min_points must be in [0, max_points)")

        categories[category] = CategoryParameters(
            mu=_as_float(params.get("mu", base.mu), f"{field_name}.mu"),
            sigma=sigma,
            weight=weight,
            min_points=min_points,
        )
    return categories


def _parse_progressive_scaling(value: dict[str, Any]) -> ProgressiveScalingConfig:
    defaults = ProgressiveScalingConfig()
    min_effect = _as_float(
        value.get("min_effect", defaults.min_effect), "progressive_scaling.min_effect"
    )
    max_effect = _as_float(
        value.get("max_effect", defaults.max_effect), "progressive_scaling.max_effect"
    )
    for name, effect in (("min_effect", min_effect), ("max_effect", max_effect)):
        if not 0.0 <= effect <= 1.0:
            raise ValueError(f"progressive_scaling.{name} must be between 0.0 and 1.0")
    return ProgressiveScalingConfig(
        enabled=_as_bool(value.get("enabled", defaults.enabled), "progressive_scaling.enabled"),
        min_effect=min_effect,
        max_effect=max_effect,
    )


def _parse_multiplier_mapping(value: Any, field_name: str) -> dict[str, float]:
    parsed = _as_float_mapping(value, field_name)
    output: dict[str, float] = {}
    for tag_name, multiplier in parsed.items():
        if multiplier < 0:
            raise ValueError(f"{field_name}.{tag_name} must be non-negative")
        output[tag_name.strip().lower()] = multiplier
    return output


def _parse_contexts(value: Any) -> tuple[Context, ...]:
    items = _as_table_list(value, "contexts")
    contexts: list[Context] = []
    seen: set[str] = set()
    for index, item in enumerate(items):
        field_name = f"contexts[{index}]"
        key = _as_str(item.get("key"), f"{field_name}.key")
        if key in seen:
            raise ValueError(f"Duplicate context key: {key}")
        seen.add(key)
        contexts.append(
            Context(
                key=key,
                name=_as_str(item.get("name", key), f"{field_name}.name"),
                description=_as_str(item.get("description", ""), f"{field_name}.description"),
                subcontexts=tuple(
                    _parse_subcontext(entry, f"{field_name}.subcontexts[{sub_index}]")
                    for sub_index, entry in enumerate(
                        _as_table_list(item.get("subcontexts"), f"{field_name}.subcontexts")
                    )
                ),
                pattern_subcontexts=tuple(
                    _parse_pattern_subcontext(
                        entry, f"{field_name}.pattern_subcontexts[{sub_index}]"
                    )
                    for sub_index, entry in enumerate(
                        _as_table_list(
                            item.get("pattern_subcontexts"),
                            f"{field_name}.pattern_subcontexts",
                        )
                    )
                ),
            )
        )
    return tuple(contexts)


def _parse_subcontext(value: dict[str, Any], field_name: str) -> Subcontext:
    return Subcontext(
        name=_as_str(value.get("name"), f"{field_name}.name"),
        multiplier=_as_multiplier(value.get("multiplier"), f"{field_name}.multiplier"),
        tags=tuple(tag.strip().lower() for tag in _as_str_list(value.get("tags"))),
    )


def _parse_pattern_subcontext(value: dict[str, Any], field_name: str) -> PatternSubcontext:
    patterns = _as_str_list(value.get("patterns"))
    if not patterns:
        raise ValueError(f"{field_name}.patterns must list at least one regex")
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"{field_name}.patterns has invalid regex {pattern!r}: {exc}") from exc
    raw_category = value.get("category")
    return PatternSubcontext(
        name=_as_str(value.get("name"), f"{field_name}.name"),
        multiplier=_as_multiplier(value.get("multiplier"), f"{field_name}.multiplier"),
        patterns=tuple(patterns),
        category=None
        if raw_category is None
        else parse_category(raw_category, f"{field_name}.category"),
    )


def _as_multiplier(raw: Any, field_name: str) -> float:
    multiplier = _as_float(raw, field_name)
    if multiplier < 0:
        raise ValueError(f"{field_name} must be non-negative")
    return multiplier


def _as_path_or_none(value: Any, field_name: str, base_dir: Path) -> str | None:
    if value is None:
        return None
    path = Path(_as_str(value, field_name))
    if not path.is_absolute():
        path = base_dir / path
    return str(path)


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_table_list(value: Any, field_name: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list of tables")
    output: list[dict[str, Any]] = []
    for item in value:
        if not isinstance(item, dict):
            raise ValueError(f"{field_name} must be a list of tables")
        output.append(item)
    return output


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("Expected a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError("Expected a list of strings")
        items.append(item)
    return items


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{field_name} must be an integer")
    return raw


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ValueError(f"{field_name} must be a boolean")
    return raw


def _as_float_mapping(value: Any, field_name: str) -> dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")

    parsed: dict[str, float] = {}
    for key, raw in value.items():
        if not isinstance(key, str):
            raise ValueError(f"{field_name} keys must be strings")
        parsed[key] = _as_float(raw, f"{field_name}.{key}")
    return parsed


def _as_float(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    return float(raw)
