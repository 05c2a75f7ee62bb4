"""
Quoted dialogue detection.

Quotes are matched naively: an opening mark pairs with the nearest closing
mark of the same style on the same line. Apostrophes inside words (``don't``,
``Ana’s``) never close a single-quoted passage. A quote directly followed by a
speech tag (``"Hello," said Ana``) is reported together with that tag.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Pattern, Sequence, Tuple

import regex as re

from .models import DialogueSpan, Span

logger = logging.getLogger(__name__)

SPEECH_VERBS = (
    "said", "asked", "replied", "whispered", "shouted", "muttered", "exclaimed",
    "declared", "admitted", "confessed", "demanded", "insisted", "suggested",
    "observed", "remarked", "announced", "continued", "added", "concluded",
    "interrupted", "answered", "responded", "nodded", "smiled", "laughed",
    "sighed", "frowned", "grimaced", "shrugged", "paused",
)

SPEAKER_PRONOUNS = ("he", "she", "they", "it", "we", "you", "I")

# (opening mark, closing mark)
QUOTE_PAIRS: Tuple[Tuple[str, str], ...] = (
    ('"', '"'),
    ("“", "”"),
    ("'", "'"),
    ("‘", "’"),
)

_NAME_TOKEN = r"\p{Lu}[\w'’-]*"
_PRONOUN = "|".join(
    sorted({p for word in SPEAKER_PRONOUNS for p in (word, word.capitalize())})
)
_SPEAKER = rf"(?:(?:{_PRONOUN})\b|{_NAME_TOKEN})"
_VERB = "|".join(SPEECH_VERBS)
# Clause text after the verb runs to the next sentence boundary or quote mark.
_TAIL = r"(?:[^.!?\n\"'“”‘’]|(?<=\w)['’](?=\w))*"
ATTRIBUTION = rf"(?:{_SPEAKER}[ \t]+){{0,3}}(?:{_VERB})\b{_TAIL}"

_TRIM_CHARS = " \t,;:-—–"


def _quote_body(opening: str, closing: str) -> str:
    opening_re, closing_re = re.escape(opening), re.escape(closing)
    if closing in ("'", "’"):
        return (
            rf"(?<!\w){opening_re}"
            rf"(?P<text>(?:[^{opening_re}{closing_re}\n]|(?<=\w){closing_re}(?=\w))+)"
            rf"{closing_re}(?!\w)"
        )
    return (
        rf"{opening_re}(?P<text>[^{opening_re}{closing_re}\n]+){closing_re}"
    )


def _compile_patterns() -> List[Tuple[str, Pattern[str], Pattern[str]]]:
    patterns = []
    for opening, closing in QUOTE_PAIRS:
        body = _quote_body(opening, closing)
        bare = re.compile(body)
        attributed = re.compile(rf"{body}[ \t]*(?P<attribution>{ATTRIBUTION})")
        patterns.append((opening, bare, attributed))
    return patterns


_PATTERNS = _compile_patterns()


def segment_dialogue(text: str) -> List[DialogueSpan]:
    """
    Return non-overlapping dialogue spans sorted by start offset.

    Attributed matches win over bare quotes; a bare quote that lies inside or
    across an accepted span is dropped.
    """
    if not text:
        return []

    attributed: List[DialogueSpan] = []
    bare: List[DialogueSpan] = []
    for quote_char, bare_pattern, attributed_pattern in _PATTERNS:
        for match in attributed_pattern.finditer(text):
            attributed.append(_attributed_span(match, quote_char))
        for match in bare_pattern.finditer(text):
            bare.append(
                DialogueSpan(
                    span=Span(match.start(), match.end()),
                    quote_char=quote_char,
                    text=match.group("text"),
                )
            )

    accepted: List[DialogueSpan] = []
    _accept_non_overlapping(accepted, attributed)
    _accept_non_overlapping(accepted, bare)
    accepted.sort(key=lambda section: section.span.start)
    logger.debug(
        "Segmented %s dialogue spans (%s attributed)",
        len(accepted),
        sum(1 for section in accepted if section.attribution),
    )
    return accepted


def span_in_dialogue(span: Span, dialogue: Iterable[DialogueSpan]) -> bool:
    """Return True when ``span`` touches any dialogue region."""
    return any(section.span.overlaps(span) for section in dialogue)


def _attributed_span(match: "re.Match[str]", quote_char: str) -> DialogueSpan:
    raw = match.group("attribution")
    attribution = raw.rstrip(_TRIM_CHARS)
    end = match.start("attribution") + len(attribution)
    return DialogueSpan(
        span=Span(match.start(), end),
        quote_char=quote_char,
        text=match.group("text"),
        attribution=attribution,
    )


def _accept_non_overlapping(
    accepted: List[DialogueSpan], candidates: Sequence[DialogueSpan]
) -> None:
    ordered = sorted(candidates, key=lambda s: (s.span.start, -s.span.length))
    for candidate in ordered:
        if any(existing.span.overlaps(candidate.span) for existing in accepted):
            continue
        accepted.append(candidate)
