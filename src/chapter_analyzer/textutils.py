from __future__ import annotations

import re
import unicodedata
from typing import Iterable, Sequence

from .models import DialogueSpan, TextStatistics, Token

SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
WORD_RE = re.compile(r"\w", re.UNICODE)
PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")


def normalize_name(value: str) -> str:
    """Fold a name so comparisons ignore case and Unicode presentation forms."""
    normalized = unicodedata.normalize("NFKC", value)
    normalized = re.sub(r"\s+", " ", normalized)
    return normalized.strip().casefold()


def count_sentences(text: str) -> int:
    return sum(1 for chunk in SENTENCE_SPLIT_RE.split(text) if WORD_RE.search(chunk))


def count_paragraphs(text: str) -> int:
    return sum(1 for block in PARAGRAPH_SPLIT_RE.split(text) if block.strip())


def compute_statistics(
    text: str, tokens: Sequence[Token], dialogue: Iterable[DialogueSpan]
) -> TextStatistics:
    """Summarize word, sentence, paragraph and dialogue counts for a chapter."""
    if not text.strip():
        return TextStatistics(character_count=len(text))

    quoted = [_quoted_region(section) for section in dialogue]
    in_dialogue = 0
    for token in tokens:
        if any(start <= token.span.start < end for start, end in quoted):
            in_dialogue += 1
    ratio = in_dialogue / len(tokens) if tokens else 0.0

    return TextStatistics(
        word_count=len(text.split()),
        character_count=len(text),
        sentence_count=count_sentences(text),
        paragraph_count=count_paragraphs(text),
        dialogue_ratio=round(ratio, 4),
    )


def _quoted_region(section: DialogueSpan) -> tuple[int, int]:
    # Attribution tails are narration, only the quoted words count as dialogue.
    start = section.span.start + len(section.quote_char)
    return start, start + len(section.text)
