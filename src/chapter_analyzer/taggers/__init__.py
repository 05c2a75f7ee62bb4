from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .base import EntityTagger, TaggedEntity
from .heuristic_tagger import HeuristicEntityTagger
from .spacy_tagger import SpacyEntityTagger

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..config import AnalyzerConfig

__all__ = [
    "EntityTagger",
    "TaggedEntity",
    "HeuristicEntityTagger",
    "SpacyEntityTagger",
    "create_tagger",
    "build_tagger_from_config",
]


def create_tagger(name: str, **kwargs: Any) -> EntityTagger:
    """Factory for building entity taggers by name."""
    normalized = name.lower().strip()
    if normalized == "heuristic":
        return HeuristicEntityTagger()
    if normalized == "spacy":
        return SpacyEntityTagger(**kwargs)
    raise ValueError(f"Unknown tagger '{name}'.")


def build_tagger_from_config(config: "AnalyzerConfig") -> EntityTagger:
    """Convenience helper to build a tagger from AnalyzerConfig."""
    if config.tagger_name.lower().strip() == "spacy":
        return create_tagger(config.tagger_name, model=config.spacy_model)
    return create_tagger(config.tagger_name)
