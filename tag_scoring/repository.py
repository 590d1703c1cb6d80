"""Tag records and the repository interface the resolver reads from."""

from __future__ import annotations

import csv
import gzip
import io
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

ACTIVE_ALIAS_STATUS = "active"
TAG_EXPORT_COLUMNS = ("name", "category", "post_count")
ALIAS_EXPORT_COLUMNS = ("antecedent_name", "consequent_name", "status")


class RepositoryError(RuntimeError):
    """Raised when tag data cannot be read."""


@dataclass(frozen=True, slots=True)
class TagRecord:
    """Immutable snapshot of a tag as stored in the tag database."""

    name: str
    category: int
    post_count: int
    quality: float | None = None
    manual_score: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "post_count": self.post_count,
            "quality": self.quality,
            "manual_score": self.manual_score,
        }


@dataclass(frozen=True, slots=True)
class TagAlias:
    """Alias relationship from a non-canonical name to its authoritative tag."""

    antecedent_name: str
    consequent_name: str
    status: str = ACTIVE_ALIAS_STATUS


@dataclass(frozen=True, slots=True)
class FuzzyMatch:
    """Best fuzzy candidate with its relevance score."""

    record: TagRecord
    relevance: float


class TagRepository(Protocol):
    """Lookup operations the tag resolver needs from storage."""

    async def find_exact(self, name: str) -> TagRecord | None:
        """Return the tag whose canonical name equals ``name``."""

    async def find_by_alias(self, name: str) -> TagRecord | None:
        """Return the consequent tag of an active alias named ``name``."""

    async def find_fuzzy(self, name: str) -> FuzzyMatch | None:
        """Return the most relevant partial match for ``name``."""


def fuzzy_relevance(tag_name: str, query: str) -> float | None:
    """Rank how well ``tag_name`` matches ``query``; ``None`` when it does not.

    Exact (case-insensitive) matches rank 1.0, as does a name equal to the
    query with spaces written as underscores. Names containing the query rank
    0.8 and names containing the underscored query 0.6.
    """
    name = tag_name.lower()
    needle = query.strip().lower()
    if not needle:
        return None
    if name == needle:
        return 1.0
    if needle in name:
        return 0.8
    underscored = "_".join(needle.split())
    if underscored == needle:
        return None
    if name == underscored:
        return 1.0
    if underscored in name:
        return 0.6
    return None


class InMemoryTagRepository:
    """Dict-backed repository over a tag database snapshot."""

    def __init__(self, records: Iterable[TagRecord], aliases: Iterable[TagAlias] = ()) -> None:
        self._tags: dict[str, TagRecord] = {}
        for record in records:
            self._tags[record.name.lower()] = record

        self._aliases: dict[str, str] = {}
        skipped = 0
        for alias in aliases:
            if alias.status != ACTIVE_ALIAS_STATUS:
                continue
            consequent = alias.consequent_name.lower()
            if consequent not in self._tags:
                skipped += 1
                continue
            self._aliases[alias.antecedent_name.lower()] = consequent
        if skipped:
            logger.debug("Skipped %d aliases pointing at unknown tags", skipped)

    @classmethod
    def from_export(
        cls, tags_path: Path, aliases_path: Path | None = None
    ) -> InMemoryTagRepository:
        """Build a repository from tag (and alias) database export CSV files."""
        records = list(load_tag_export(tags_path))
        aliases = list(load_alias_export(aliases_path)) if aliases_path is not None else []
        repository = cls(records, aliases)
        logger.info(
            "Loaded %d tags and %d aliases from %s",
            repository.tag_count,
            repository.alias_count,
            tags_path,
        )
        return repository

    @property
    def tag_count(self) -> int:
        return len(self._tags)

    @property
    def alias_count(self) -> int:
        return len(self._aliases)

    async def find_exact(self, name: str) -> TagRecord | None:
        return self._tags.get(name.lower())

    async def find_by_alias(self, name: str) -> TagRecord | None:
        consequent = self._aliases.get(name.lower())
        if consequent is None:
            return None
        return self._tags.get(consequent)

    async def find_fuzzy(self, name: str) -> FuzzyMatch | None:
        candidates: list[FuzzyMatch] = []
        for record in self._tags.values():
            relevance = fuzzy_relevance(record.name, name)
            if relevance is not None:
                candidates.append(FuzzyMatch(record=record, relevance=relevance))
        if not candidates:
            return None
        # Highest relevance, then most used, then alphabetical.
        return min(
            candidates,
            key=lambda item: (-item.relevance, -item.record.post_count, item.record.name),
        )


def load_tag_export(path: Path) -> Iterator[TagRecord]:
    """Yield tags with a positive post count from a tag export CSV (optionally gzipped)."""
    for line_number, row in _read_export_rows(path, TAG_EXPORT_COLUMNS):
        post_count = _parse_int(row.get("post_count"), path, line_number, "post_count")
        if post_count is None or post_count <= 0:
            continue
        name = (row.get("name") or "").strip()
        if not name:
            continue
        category = _parse_int(row.get("category"), path, line_number, "category")
        yield TagRecord(
            name=name.lower(),
            category=category if category is not None else 0,
            post_count=post_count,
            quality=_parse_float(row.get("quality"), path, line_number, "quality"),
            manual_score=_parse_int(row.get("manual_score"), path, line_number, "manual_score"),
        )


def load_alias_export(path: Path) -> Iterator[TagAlias]:
    """Yield active aliases from an alias export CSV (optionally gzipped)."""
    for _, row in _read_export_rows(path, ALIAS_EXPORT_COLUMNS):
        status = (row.get("status") or "").strip()
        if status != ACTIVE_ALIAS_STATUS:
            continue
        antecedent = (row.get("antecedent_name") or "").strip()
        consequent = (row.get("consequent_name") or "").strip()
        if not antecedent or not consequent:
            continue
        yield TagAlias(
            antecedent_name=antecedent.lower(),
            consequent_name=consequent.lower(),
            status=status,
        )


def _read_export_rows(
    path: Path, required_columns: tuple[str, ...]
) -> Iterator[tuple[int, dict[str, str]]]:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise RepositoryError(f"Cannot read tag export {path}: {exc}") from exc

    if path.suffix == ".gz":
        try:
            raw = gzip.decompress(raw)
        except (OSError, EOFError) as exc:
            raise RepositoryError(f"Invalid gzip data in {path}: {exc}") from exc

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise RepositoryError(f"Tag export {path} is not UTF-8: {exc}") from exc

    reader = csv.DictReader(io.StringIO(text))
    columns = set(reader.fieldnames or [])
    missing = [column for column in required_columns if column not in columns]
    if missing:
        joined = ", ".join(missing)
        raise RepositoryError(f"Tag export {path} is missing columns: {joined}")

    try:
        for row in reader:
            yield (reader.line_num, row)
    except csv.Error as exc:
        raise RepositoryError(f"Malformed CSV in {path}: {exc}") from exc


def _parse_int(value: str | None, path: Path, line_number: int, field_name: str) -> int | None:
    text = (value or "").strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError as exc:
        raise RepositoryError(
            f"{path}:{line_number}: {field_name} must be an integer, got {text!r}"
        ) from exc


def _parse_float(
    value: str | None, path: Path, line_number: int, field_name: str
) -> float | None:
    text = (value or "").strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError as exc:
        raise RepositoryError(
            f"{path}:{line_number}: {field_name} must be a number, got {text!r}"
        ) from exc
