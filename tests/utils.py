from __future__ import annotations

from typing import Any, Sequence

from chapter_analyzer.correction import CorrectionPayload, TextCorrector
from chapter_analyzer.models import DialogueSpan

SCENARIO_TEXT = '"Hello," said Ana. Ana walked home.'


def filler_words(count: int) -> list[str]:
    """Distinct words that never repeat, for spacing out a test word."""
    return [f"filler{idx}" for idx in range(count)]


def spaced(word: str, gap: int) -> str:
    """Text with ``word`` twice, ``gap`` filler words apart."""
    return " ".join([word, *filler_words(gap), word])


class StaticCorrector(TextCorrector):
    """Corrector that always returns the same raw payload and records its calls."""

    def __init__(self, raw: Any) -> None:
        self.raw = raw
        self.calls: list[tuple[str, Sequence[DialogueSpan]]] = []

    def correct(self, text: str, dialogue_hints: Sequence[DialogueSpan]) -> CorrectionPayload:
        self.calls.append((text, dialogue_hints))
        return CorrectionPayload(raw=self.raw)
