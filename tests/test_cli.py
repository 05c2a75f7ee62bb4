import json
from pathlib import Path

import yaml
from typer.testing import CliRunner

from chapter_analyzer.cli import app
from tests.utils import SCENARIO_TEXT

runner = CliRunner()


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_cli_analyze_outputs_result_and_updates_registry(tmp_path: Path):
    """analyze prints the full result and persists newly seen names."""
    chapter = _write(tmp_path, "chapter1.txt", SCENARIO_TEXT)
    registry = tmp_path / "registry.yaml"

    result = runner.invoke(
        app, ["analyze", "--input-path", str(chapter), "--registry", str(registry)]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["corrected_text"] == SCENARIO_TEXT
    assert payload["names"][0]["name"] == "Ana"
    assert payload["dialogue"][0]["attribution"] == "said Ana"
    stored = yaml.safe_load(registry.read_text(encoding="utf-8"))
    assert [entry["canonical_name"] for entry in stored["names"]] == ["Ana"]


def test_cli_analyze_flags_names_from_earlier_chapters(tmp_path: Path):
    registry = tmp_path / "registry.yaml"
    first = _write(tmp_path, "chapter1.txt", SCENARIO_TEXT)
    second = _write(tmp_path, "chapter2.txt", '"Hi," said Anna.')

    runner.invoke(app, ["analyze", "--input-path", str(first), "--registry", str(registry)])
    result = runner.invoke(
        app,
        [
            "analyze",
            "--input-path",
            str(second),
            "--registry",
            str(registry),
            "--chapter-number",
            "2",
            "--no-update-registry",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["consistency"][0]["candidate_name"] == "Anna"
    assert payload["consistency"][0]["matched_tracked"] == "Ana"
    assert payload["highlights"][0]["kind"] == "inconsistency"
    assert payload["highlights"][0]["text"] == "Anna"
    stored = yaml.safe_load(registry.read_text(encoding="utf-8"))
    assert [entry["canonical_name"] for entry in stored["names"]] == ["Ana"]


def test_cli_correct_writes_output(tmp_path: Path):
    chapter = _write(tmp_path, "chapter.txt", "I teh went home")
    output = tmp_path / "out" / "corrected.txt"

    result = runner.invoke(
        app, ["correct", "--input-path", str(chapter), "--output-path", str(output)]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["corrected_text"] == "I the went home"
    assert payload["corrections"][0]["kind"] == "typo"
    assert payload["corrections"][0]["start"] == 2
    assert output.read_text(encoding="utf-8") == "I the went home"


def test_cli_show_registry(tmp_path: Path):
    registry = _write(
        tmp_path,
        "registry.yaml",
        "names:\n  - canonical_name: Ana\n    kind: person\n",
    )

    result = runner.invoke(app, ["show-registry", "--registry", str(registry)])

    assert result.exit_code == 0, result.output
    assert "canonical_name: Ana" in result.stdout
    assert "first_seen_chapter: 1" in result.stdout


def test_cli_print_config():
    """print-config command dumps the current configuration values."""
    result = runner.invoke(app, ["print-config"])
    assert result.exit_code == 0
    assert "common_word_window: 150" in result.stdout
    assert "similarity_threshold" in result.stdout


def test_cli_rejects_invalid_config(tmp_path: Path):
    config = _write(tmp_path, "config.yaml", "similarity_threshold: 3\n")
    chapter = _write(tmp_path, "chapter.txt", SCENARIO_TEXT)

    result = runner.invoke(
        app, ["analyze", "--input-path", str(chapter), "--config", str(config)]
    )

    assert result.exit_code != 0
