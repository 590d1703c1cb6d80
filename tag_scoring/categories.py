"""Tag category table."""

from __future__ import annotations

from enum import IntEnum


class TagCategory(IntEnum):
    """Classification buckets used by the imageboard tag database."""

    GENERAL = 0
    ARTIST = 1
    CONTRIBUTOR = 2
    COPYRIGHT = 3
    CHARACTER = 4
    SPECIES = 5
    INVALID = 6
    META = 7
    LORE = 8

    @property
    def display_name(self) -> str:
        return self.name.capitalize()


def category_name(category: int | None) -> str:
    """Return the display name for a category index, or ``Unknown``."""
    if category is None:
        return "Unknown"
    try:
        return TagCategory(category).display_name
    except ValueError:
        return "Unknown"


def parse_category(raw: object, field_name: str = "category") -> int:
    """Parse a category given as an index or a (case-insensitive) name."""
    if isinstance(raw, bool):
        raise ValueError(f"{field_name} must be a category name or index")
    if isinstance(raw, int):
        if raw < 0:
            raise ValueError(f"{field_name} must be a non-negative index")
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if text.isdigit():
            return int(text)
        try:
            return int(TagCategory[text.upper()])
        except KeyError:
            choices = ", ".join(item.name.lower() for item in TagCategory)
            raise ValueError(f"{field_name} must be one of: {choices}") from None
    raise ValueError(f"{field_name} must be a category name or index")
