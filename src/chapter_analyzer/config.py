from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml


@dataclass(slots=True)
class OpenAISettings:
    """Configuration block for OpenAI-powered correction and phrasing review."""

    enabled: bool = False
    model: str = "gpt-4.1-mini"
    api_key: str | None = None
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str | None = None
    organization: str | None = None
    temperature: float = 0.1
    max_output_tokens: int = 4000
    top_p: float = 0.95
    request_timeout: float = 60.0


@dataclass(slots=True)
class AnalyzerConfig:
    """Configuration options for the chapter analysis engine."""

    common_word_window: int = 150
    uncommon_word_window: int = 168
    min_word_length: int = 1
    similarity_threshold: float = 0.8
    tagger_name: str = "heuristic"
    spacy_model: str = "en_core_web_sm"
    fallback_confidence: float = 0.75
    default_ai_confidence: float = 0.9
    correction_timeout: float = 60.0
    max_workers: int = 4
    phrasing_enabled: bool = False
    max_awkward_phrases: int = 3
    summary_enabled: bool = False
    openai: OpenAISettings = field(default_factory=OpenAISettings)

    def __post_init__(self) -> None:
        if self.common_word_window < 1:
            raise ValueError("common_word_window must be positive.")
        if self.uncommon_word_window < self.common_word_window:
            raise ValueError(
                "uncommon_word_window must be at least as large as common_word_window."
            )
        if not 0.0 < self.similarity_threshold < 1.0:
            raise ValueError("similarity_threshold must lie strictly between 0 and 1.")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1.")
        if self.correction_timeout <= 0:
            raise ValueError("correction_timeout must be positive.")

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable dictionary representation of the configuration."""
        return dict(asdict(self))


def _build_kwargs(data: Mapping[str, Any]) -> dict[str, Any]:
    allowed = {field.name for field in fields(AnalyzerConfig)}
    kwargs = {key: data[key] for key in data if key in allowed}
    if "openai" in data:
        openai_value = data["openai"]
        if isinstance(openai_value, OpenAISettings):
            kwargs["openai"] = openai_value
        elif isinstance(openai_value, Mapping):
            kwargs["openai"] = _build_openai_settings(openai_value)
        else:
            kwargs.pop("openai")
    return kwargs


def _build_openai_settings(data: Mapping[str, Any]) -> OpenAISettings:
    openai_allowed = {field.name for field in fields(OpenAISettings)}
    filtered = {key: data[key] for key in data if key in openai_allowed}
    return OpenAISettings(**filtered)


def config_from_dict(data: Mapping[str, Any] | None) -> AnalyzerConfig:
    """Build an AnalyzerConfig from a dictionary-like input."""
    if data is None:
        return AnalyzerConfig()
    return AnalyzerConfig(**_build_kwargs(data))


def config_from_yaml(path: str | Path) -> AnalyzerConfig:
    """Load configuration from a YAML file."""
    contents = Path(path).read_text(encoding="utf-8")
    parsed = yaml.safe_load(contents) or {}
    if not isinstance(parsed, MutableMapping):
        raise ValueError("Configuration YAML must define a mapping.")
    return config_from_dict(parsed)


def load_config(path: str | Path | None = None) -> AnalyzerConfig:
    """Load configuration from YAML when provided, otherwise return defaults."""
    if path is None:
        return AnalyzerConfig()
    return config_from_yaml(path)
