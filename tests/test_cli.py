"""CLI tests for tag-scoring commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from typer.testing import CliRunner

from tag_scoring import __version__
from tag_scoring.cli import app
from tests.helpers_data import write_exports

runner = CliRunner()


def test_root_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("score", "bulk", "multiplier", "detail", "curve", "categories"):
        assert command in result.stdout


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


def test_score_json_for_alias(tmp_path: Path) -> None:
    tags, aliases = write_exports(tmp_path)
    result = runner.invoke(
        app,
        [
            "score",
            "Canine",
            "--tags",
            str(tags),
            "--aliases",
            str(aliases),
            "--format",
            "json",
            "--repo",
            str(tmp_path),
        ],
    )
    assert result.exit_code == 0

    payload = json.loads(result.stdout)
    assert payload["is_correct"] is True
    assert payload["actual_tag"] == "wolf"
    assert payload["category"] == 5
    assert payload["score"] >= 800
    assert payload["meta"]["version"] == __version__


def test_score_human_for_unknown_tag(tmp_path: Path) -> None:
    tags, _ = write_exports(tmp_path, compress=True)
    result = runner.invoke(
        app, ["score", "bogus_tag_xyz", "--tags", str(tags), "--repo", str(tmp_path)]
    )
    assert result.exit_code == 0
    assert 'No tag found matching "bogus_tag_xyz"' in result.stdout


def test_score_requires_tag_export(tmp_path: Path) -> None:
    result = runner.invoke(app, ["score", "wolf", "--repo", str(tmp_path)])
    assert result.exit_code == 2
    assert "Provide --tags" in result.output


def test_score_reports_unreadable_export(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["score", "wolf", "--tags", str(tmp_path / "absent.csv"), "--repo", str(tmp_path)],
    )
    assert result.exit_code == 2
    assert "Cannot read tag export" in result.output


def test_score_reads_data_paths_from_config(tmp_path: Path) -> None:
    write_exports(tmp_path / "data")
    (tmp_path / ".tag-scoring.toml").write_text(
        "\n".join(
            [
                'format = "json"',
                "",
                "[data]",
                'tags = "data/tags.csv"',
                'aliases = "data/tag_aliases.csv"',
            ]
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["score", "canine", "--repo", str(tmp_path)])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["actual_tag"] == "wolf"


def test_bulk_keeps_order_and_counts(tmp_path: Path) -> None:
    tags, _ = write_exports(tmp_path)
    result = runner.invoke(
        app,
        [
            "bulk",
            "wolf",
            "bogus_tag_xyz",
            "WOLF",
            "--tags",
            str(tags),
            "--format",
            "json",
            "--repo",
            str(tmp_path),
        ],
    )
    assert result.exit_code == 0

    payload = json.loads(result.stdout)
    assert payload["total"] == 3
    assert payload["successful"] == 3
    assert [item["guess"] for item in payload["results"]] == ["wolf", "bogus_tag_xyz", "WOLF"]


def test_bulk_reads_stdin(tmp_path: Path) -> None:
    tags, aliases = write_exports(tmp_path)
    result = runner.invoke(
        app,
        [
            "bulk",
            "--stdin",
            "--tags",
            str(tags),
            "--aliases",
            str(aliases),
            "--repo",
            str(tmp_path),
        ],
        input="wolf\n\ncanine\nnope_nothing\n",
    )
    assert result.exit_code == 0
    assert "Scored 3/3 guesses: 2 correct" in result.stdout
    assert "+ canine -> wolf" in result.stdout


def test_bulk_without_guesses_is_an_error(tmp_path: Path) -> None:
    tags, _ = write_exports(tmp_path)
    result = runner.invoke(app, ["bulk", "--tags", str(tags), "--repo", str(tmp_path)])
    assert result.exit_code == 2


def test_multiplier_json_for_color_tag(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "multiplier",
            "red_fur",
            "--category",
            "general",
            "--format",
            "json",
            "--repo",
            str(tmp_path),
        ],
    )
    assert result.exit_code == 0

    payload = json.loads(result.stdout)
    assert payload["breakdown"]["source"] == "contextual"
    assert payload["breakdown"]["final_multiplier"] == 0.5
    assert payload["contexts"] == [
        {"context": "color", "subcontext": "color_detection", "multiplier": 0.5}
    ]


def test_multiplier_rejects_unknown_category(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["multiplier", "red_fur", "--category", "dragons", "--repo", str(tmp_path)]
    )
    assert result.exit_code == 2


def test_detail_human(tmp_path: Path) -> None:
    result = runner.invoke(app, ["detail", "316", "-c", "0", "--repo", str(tmp_path)])
    assert result.exit_code == 0
    assert "General tag with 316 posts" in result.stdout
    assert "mu: 2.5, sigma: 0.621, weight: 1.15" in result.stdout


def test_curve_csv_has_header_and_samples(tmp_path: Path) -> None:
    result = runner.invoke(app, ["curve", "--category", "species", "--repo", str(tmp_path)])
    assert result.exit_code == 0

    lines = result.stdout.strip().splitlines()
    assert lines[0] == "PostCount,LogPostCount,RarityScore,BaseScore,FinalScore"
    assert len(lines) == 102
    assert lines[1].startswith("1,0.000,")


def test_curve_json_includes_parameters(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "curve",
            "--category",
            "lore",
            "--points",
            "5",
            "--format",
            "json",
            "--repo",
            str(tmp_path),
        ],
    )
    assert result.exit_code == 0

    payload = json.loads(result.stdout)
    assert payload["category"] == 8
    assert payload["parameters"]["mu"] == 3.8
    assert len(payload["samples"]) == 5


def test_curve_rejects_unknown_format(tmp_path: Path) -> None:
    result = runner.invoke(app, ["curve", "--format", "xml", "--repo", str(tmp_path)])
    assert result.exit_code == 2


def test_categories_json_lists_all(tmp_path: Path) -> None:
    result = runner.invoke(app, ["categories", "--format", "json", "--repo", str(tmp_path)])
    assert result.exit_code == 0

    items = json.loads(result.stdout)["categories"]
    assert [item["name"] for item in items] == [
        "General",
        "Artist",
        "Contributor",
        "Copyright",
        "Character",
        "Species",
        "Invalid",
        "Meta",
        "Lore",
    ]
    assert items[2]["min_points"] == 2000


def test_config_init_and_validate(tmp_path: Path) -> None:
    out_path = tmp_path / ".tag-scoring.toml"
    result = runner.invoke(app, ["config-init", "--out", str(out_path)])
    assert result.exit_code == 0
    assert out_path.exists()

    again = runner.invoke(app, ["config-init", "--out", str(out_path)])
    assert again.exit_code == 2

    validated = runner.invoke(
        app, ["config-validate", "--repo", str(tmp_path), "--format", "json"]
    )
    assert validated.exit_code == 0
    payload = json.loads(validated.stdout)
    assert payload["ok"] is True
    assert payload["contexts"] == ["color"]

    shown = runner.invoke(app, ["config", "--repo", str(tmp_path), "--format", "json"])
    assert shown.exit_code == 0
    assert json.loads(shown.stdout)["source"] == str(out_path)


def test_config_validate_reports_bad_regex(tmp_path: Path) -> None:
    (tmp_path / ".tag-scoring.toml").write_text(
        "\n".join(
            [
                "[[contexts]]",
                'key = "broken"',
                'pattern_subcontexts = [{ name = "x", multiplier = 0.5, patterns = ["[a-"] }]',
            ]
        ),
        encoding="utf-8",
    )
    result = runner.invoke(app, ["config-validate", "--repo", str(tmp_path)])
    assert result.exit_code == 2
    assert "Invalid value" in result.output


def test_verbose_flag_enables_debug_logging(tmp_path: Path) -> None:
    result = runner.invoke(app, ["-v", "categories", "--repo", str(tmp_path)])
    assert result.exit_code == 0
    assert logging.getLogger("tag_scoring").level == logging.DEBUG

    runner.invoke(app, ["categories", "--repo", str(tmp_path)])
    assert logging.getLogger("tag_scoring").level == logging.WARNING
