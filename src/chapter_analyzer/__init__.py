"""
chapter_analyzer package exports the chapter analysis entry point and its
configuration helpers for library consumers.
"""

from __future__ import annotations

from .config import AnalyzerConfig, config_from_dict, config_from_yaml, load_config
from .correction import CallableCorrector, OpenAICorrector, TextCorrector
from .errors import (
    ChapterAnalysisError,
    ExternalCapabilityFailure,
    InputError,
    MalformedResponseError,
    RegistryUnavailableError,
)
from .models import AnalysisResult, TrackedName
from .pipeline import analyze_chapter
from .registry import InMemoryNameRegistry, NameRegistry, YamlNameRegistry
from .summary import OpenAISummaryWriter, SummaryWriter
from .taggers import build_tagger_from_config, create_tagger

__all__ = [
    "AnalyzerConfig",
    "config_from_dict",
    "config_from_yaml",
    "load_config",
    "analyze_chapter",
    "AnalysisResult",
    "TrackedName",
    "TextCorrector",
    "CallableCorrector",
    "OpenAICorrector",
    "NameRegistry",
    "InMemoryNameRegistry",
    "YamlNameRegistry",
    "SummaryWriter",
    "OpenAISummaryWriter",
    "create_tagger",
    "build_tagger_from_config",
    "ChapterAnalysisError",
    "InputError",
    "ExternalCapabilityFailure",
    "MalformedResponseError",
    "RegistryUnavailableError",
]

__version__ = "0.1.0"
