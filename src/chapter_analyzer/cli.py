from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, TypedDict

import typer
import yaml

from .config import AnalyzerConfig, load_config
from .correction import TextCorrector, build_corrector_from_config, correct_text
from .dialogue import segment_dialogue
from .errors import ChapterAnalysisError, ExternalCapabilityFailure
from .models import Correction
from .pipeline import analyze_chapter
from .registry import YamlNameRegistry

app = typer.Typer(help="Chapter Analyzer CLI.", no_args_is_help=True)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class CorrectionPayloadDict(TypedDict):
    original: str
    corrected: str
    kind: str
    start: int
    end: int
    confidence: float
    source: str


@app.callback()
def configure_logging(
    log_level: str = typer.Option(
        "WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)."
    ),
) -> None:
    """Analyze fiction chapters for typos, repetition, dialogue and name consistency."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level '{log_level}'.")
    logging.basicConfig(level=level, format=LOG_FORMAT)


@app.command()
def analyze(
    input_path: Path = typer.Option(
        ..., exists=True, readable=True, dir_okay=False, file_okay=True
    ),
    registry: Path | None = typer.Option(
        None, "--registry", "-r", help="YAML file holding the author's tracked names."
    ),
    chapter_number: int = typer.Option(1, "--chapter-number", "-n", min=1),
    config: Path | None = typer.Option(None, "--config", "-c"),
    update_registry: bool = typer.Option(
        True,
        "--update-registry/--no-update-registry",
        help="Persist newly seen names to the registry file.",
    ),
    tagger_name: str | None = typer.Option(
        None, "--tagger", "-t", help="Entity tagger to use ('heuristic' or 'spacy')."
    ),
    phrasing_enabled: bool | None = typer.Option(
        None,
        "--phrasing/--no-phrasing",
        help="Toggle the awkward phrasing review (requires OpenAI).",
    ),
    summary_enabled: bool | None = typer.Option(
        None,
        "--summary/--no-summary",
        help="Toggle literary feedback in the summary (requires OpenAI).",
    ),
    openai_enabled: bool | None = typer.Option(
        None,
        "--openai-enabled/--openai-disabled",
        help="Toggle OpenAI-backed correction.",
    ),
    openai_model: str | None = typer.Option(
        None, "--openai-model", help="OpenAI model identifier (e.g., gpt-4.1-mini)."
    ),
    openai_api_key: str | None = typer.Option(
        None, "--openai-api-key", help="Explicit OpenAI API key (prefer env vars)."
    ),
    openai_api_key_env: str | None = typer.Option(
        None,
        "--openai-api-key-env",
        help="Environment variable to read the OpenAI API key from.",
    ),
    correction_timeout: float | None = typer.Option(
        None, "--correction-timeout", help="Seconds to wait for the corrector."
    ),
) -> None:
    """Analyze one chapter and emit the full result as JSON."""
    cfg = _load_config(config)
    # Fold CLI overrides into the loaded config before anything is built from it.
    if tagger_name:
        cfg.tagger_name = tagger_name
    if phrasing_enabled is not None:
        cfg.phrasing_enabled = phrasing_enabled
    if summary_enabled is not None:
        cfg.summary_enabled = summary_enabled
    if correction_timeout is not None:
        cfg.correction_timeout = correction_timeout
    _apply_openai_overrides(
        cfg, openai_enabled, openai_model, openai_api_key, openai_api_key_env
    )
    text = input_path.read_text(encoding="utf-8")
    # The YAML registry is created on first save, so a missing file is fine.
    store = YamlNameRegistry(registry) if registry else None
    try:
        result = analyze_chapter(
            text,
            store,
            chapter_number=chapter_number,
            config=cfg,
            apply_registry_updates=update_registry,
        )
    except ChapterAnalysisError as exc:
        typer.echo(f"Analysis failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    for note in result.diagnostics:
        typer.echo(note, err=True)
    typer.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))


@app.command()
def correct(
    input_path: Path = typer.Option(
        ..., exists=True, readable=True, dir_okay=False, file_okay=True
    ),
    output_path: Path | None = typer.Option(
        None, "--output-path", "-o", help="Write the corrected text to this file."
    ),
    config: Path | None = typer.Option(None, "--config", "-c"),
    openai_enabled: bool | None = typer.Option(
        None,
        "--openai-enabled/--openai-disabled",
        help="Toggle OpenAI-backed correction.",
    ),
    openai_model: str | None = typer.Option(
        None, "--openai-model", help="OpenAI model identifier (e.g., gpt-4.1-mini)."
    ),
    openai_api_key: str | None = typer.Option(
        None, "--openai-api-key", help="Explicit OpenAI API key (prefer env vars)."
    ),
    openai_api_key_env: str | None = typer.Option(
        None,
        "--openai-api-key-env",
        help="Environment variable to read the OpenAI API key from.",
    ),
) -> None:
    """Correct one chapter and emit the corrected text plus corrections as JSON."""
    cfg = _load_config(config)
    _apply_openai_overrides(
        cfg, openai_enabled, openai_model, openai_api_key, openai_api_key_env
    )
    text = input_path.read_text(encoding="utf-8")
    outcome = correct_text(text, segment_dialogue(text), _build_corrector(cfg), cfg)
    for note in outcome.diagnostics:
        typer.echo(note, err=True)
    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(outcome.corrected_text, encoding="utf-8")
    payload: Dict[str, Any] = {
        "corrected_text": outcome.corrected_text,
        "source": outcome.source,
        "corrections": [_correction_dict(item) for item in outcome.corrections],
    }
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command("show-registry")
def show_registry(
    registry: Path = typer.Option(..., "--registry", "-r", exists=True, dir_okay=False),
) -> None:
    """Print the names tracked in a registry file as YAML."""
    try:
        names = YamlNameRegistry(registry).load()
    except ChapterAnalysisError as exc:
        raise typer.BadParameter(str(exc)) from exc
    entries: List[Dict[str, Any]] = []
    for name in names:
        entry = asdict(name)
        entry["kind"] = name.kind.value
        entries.append(entry)
    typer.echo(yaml.safe_dump({"names": entries}, sort_keys=False, allow_unicode=True))


@app.command("print-config")
def print_config() -> None:
    """Print the default configuration as YAML."""
    cfg = AnalyzerConfig()
    typer.echo(yaml.safe_dump(cfg.to_dict(), sort_keys=False))


def main() -> None:
    app()


def _load_config(path: Path | None) -> AnalyzerConfig:
    try:
        return load_config(path)
    except (OSError, ValueError, TypeError, yaml.YAMLError) as exc:
        raise typer.BadParameter(f"Invalid configuration: {exc}") from exc


def _apply_openai_overrides(
    config: AnalyzerConfig,
    openai_enabled: bool | None,
    openai_model: str | None,
    openai_api_key: str | None,
    openai_api_key_env: str | None,
) -> None:
    """Override OpenAI settings from CLI flags."""
    settings = config.openai
    if openai_enabled is not None:
        settings.enabled = openai_enabled
    if openai_model:
        settings.model = openai_model
    if openai_api_key:
        settings.api_key = openai_api_key
    if openai_api_key_env:
        settings.api_key_env = openai_api_key_env


def _build_corrector(config: AnalyzerConfig) -> TextCorrector | None:
    try:
        return build_corrector_from_config(config)
    except (ExternalCapabilityFailure, ValueError) as exc:
        # Without a corrector the rule table still runs.
        typer.echo(f"OpenAI correction unavailable: {exc}", err=True)
        return None


def _correction_dict(correction: Correction) -> CorrectionPayloadDict:
    return {
        "original": correction.original,
        "corrected": correction.corrected,
        "kind": correction.kind.value,
        "start": correction.span.start,
        "end": correction.span.end,
        "confidence": correction.confidence,
        "source": correction.source,
    }


if __name__ == "__main__":
    main()
