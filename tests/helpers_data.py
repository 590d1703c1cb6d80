from __future__ import annotations

import gzip
from pathlib import Path

TAG_ROWS = [
    ("id", "name", "category", "post_count"),
    ("1", "wolf", "5", "316"),
    ("2", "red_fur", "0", "1000"),
    ("3", "wolf_ears", "0", "120"),
    ("4", "big_wolf_plush", "0", "40"),
    ("5", "unused_tag", "0", "0"),
    ("6", "simple_background", "0", "300000"),
]

ALIAS_ROWS = [
    ("id", "antecedent_name", "consequent_name", "status"),
    ("1", "canine", "wolf", "active"),
    ("2", "lupine", "wolf", "deleted"),
    ("3", "ghost", "missing_tag", "active"),
]


def write_csv(path: Path, rows: list[tuple[str, ...]], *, compress: bool = False) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = "\n".join(",".join(row) for row in rows) + "\n"
    if compress:
        path.write_bytes(gzip.compress(text.encode("utf-8")))
    else:
        path.write_text(text, encoding="utf-8")
    return path


def write_exports(directory: Path, *, compress: bool = False) -> tuple[Path, Path]:
    suffix = ".csv.gz" if compress else ".csv"
    tags = write_csv(directory / f"tags{suffix}", TAG_ROWS, compress=compress)
    aliases = write_csv(directory / f"tag_aliases{suffix}", ALIAS_ROWS, compress=compress)
    return tags, aliases
