from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Sequence

from .config import AnalyzerConfig
from .dialogue import span_in_dialogue
from .errors import ExternalCapabilityFailure
from .llm.openai_client import (
    OpenAICompletionClient,
    RequestMetadata,
    resolve_api_key,
)
from .models import (
    DIALOGUE_SAFE_KINDS,
    Correction,
    CorrectionKind,
    DialogueSpan,
    Span,
    TokenUsage,
)
from .responses import CorrectionItem, ParseFailure, parse_correction_response

logger = logging.getLogger(__name__)

SOURCE_LLM = "llm"
SOURCE_RULES = "rules"

# Context-free misspellings that are never valid English words.
COMMON_TYPOS: Dict[str, str] = {
    "teh": "the",
    "hte": "the",
    "adn": "and",
    "taht": "that",
    "thier": "their",
    "wich": "which",
    "recieve": "receive",
    "recieved": "received",
    "beleive": "believe",
    "freind": "friend",
    "freinds": "friends",
    "wierd": "weird",
    "seperate": "separate",
    "definately": "definitely",
    "occured": "occurred",
    "untill": "until",
    "becuase": "because",
    "accross": "across",
    "alot": "a lot",
    "tommorow": "tomorrow",
    "begining": "beginning",
    "truely": "truly",
    "neccessary": "necessary",
    "suprise": "surprise",
    "suprised": "surprised",
    "goverment": "government",
    "arguement": "argument",
    "calender": "calendar",
    "enviroment": "environment",
    "existance": "existence",
}

TYPO_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(map(re.escape, COMMON_TYPOS), key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)

SYSTEM_PROMPT = (
    "You are a professional fiction editor. Fix ONLY the most obvious errors:\n"
    "1. Clear typos (misspellings like \"teh\" -> \"the\")\n"
    "2. Missing end punctuation at sentence boundaries\n"
    "3. Missing or mismatched quotation marks\n"
    "4. Character/place name spelling consistency\n"
    "\n"
    "Rules:\n"
    "- In dialogue (text within quotation marks), fix ONLY spelling errors, NOT grammar.\n"
    "- Do NOT change the author's style or voice.\n"
    "- Do NOT fix intentional informal speech.\n"
    "- Do NOT add or remove words.\n"
    "- Be conservative: only fix obvious errors."
)

USER_PROMPT_TEMPLATE = (
    "Dialogue ranges (character offsets, grammar must not change inside them): "
    "{dialogue}\n"
    "\n"
    "Text to edit:\n"
    "-----\n"
    "{text}\n"
    "-----\n"
    "\n"
    "Return only a JSON object of the form:\n"
    '{{"correctedText": "the corrected text", "corrections": [{{"original": "teh", '
    '"corrected": "the", "type": "typo|spelling|punctuation|quotation|consistency", '
    '"position": {{"start": 0, "end": 3}}, "confidence": 0.9}}]}}\n'
    "Positions are character offsets into the text above."
)


@dataclass(slots=True)
class CorrectionPayload:
    """Raw answer from a correction service, not yet validated."""

    raw: Any
    usage: TokenUsage | None = None


@dataclass(slots=True)
class CorrectionOutcome:
    corrected_text: str
    corrections: List[Correction] = field(default_factory=list)
    source: str = SOURCE_RULES
    diagnostics: List[str] = field(default_factory=list)
    usage: TokenUsage | None = None


class TextCorrector(ABC):
    """External capability that proposes corrections for a chapter."""

    @abstractmethod
    def correct(self, text: str, dialogue_hints: Sequence[DialogueSpan]) -> CorrectionPayload:
        """Return the service's raw answer; raise on failure."""
        raise NotImplementedError


class CallableCorrector(TextCorrector):
    """Adapt an arbitrary callable into the TextCorrector interface."""

    def __init__(self, func: Callable[[str, Sequence[DialogueSpan]], Any]) -> None:
        self._func = func

    def correct(self, text: str, dialogue_hints: Sequence[DialogueSpan]) -> CorrectionPayload:
        result = self._func(text, dialogue_hints)
        if isinstance(result, CorrectionPayload):
            return result
        return CorrectionPayload(raw=result)


class OpenAICorrector(TextCorrector):
    """Corrector backed by the OpenAI Responses API."""

    def __init__(
        self,
        client: OpenAICompletionClient,
        *,
        system_prompt: str = SYSTEM_PROMPT,
        user_prompt_template: str = USER_PROMPT_TEMPLATE,
    ) -> None:
        self._client = client
        self._system_prompt = system_prompt
        self._user_prompt_template = user_prompt_template

    def correct(self, text: str, dialogue_hints: Sequence[DialogueSpan]) -> CorrectionPayload:
        ranges = ", ".join(
            f"[{section.span.start}, {section.span.end})" for section in dialogue_hints
        )
        user_prompt = self._user_prompt_template.format(
            dialogue=ranges or "none",
            text=text,
        )
        result = self._client.complete(
            system_prompt=self._system_prompt,
            user_prompt=user_prompt,
            metadata=RequestMetadata(purpose="correction", char_count=len(text)),
        )
        return CorrectionPayload(raw=result.text, usage=result.usage)


def build_corrector_from_config(config: AnalyzerConfig) -> TextCorrector | None:
    """Return the configured corrector, or None when only the rule table is wanted."""
    if not config.openai.enabled:
        return None
    api_key = resolve_api_key(config.openai)
    return OpenAICorrector(OpenAICompletionClient(config.openai, api_key=api_key))


def correct_text(
    text: str,
    dialogue: Sequence[DialogueSpan],
    corrector: TextCorrector | None = None,
    config: AnalyzerConfig | None = None,
) -> CorrectionOutcome:
    """
    Correct ``text`` with the external corrector, falling back to the rule
    table when it is missing, fails, or answers with something unusable.

    Never raises for corrector problems.
    """
    cfg = config or AnalyzerConfig()
    if corrector is None:
        return fallback_outcome(text, dialogue, cfg)

    try:
        payload = corrector.correct(text, dialogue)
    except ExternalCapabilityFailure as exc:
        return fallback_outcome(text, dialogue, cfg, reason=str(exc))
    except Exception as exc:
        logger.exception("Corrector raised unexpectedly")
        return fallback_outcome(text, dialogue, cfg, reason=f"corrector error: {exc}")

    parsed = parse_correction_response(payload.raw)
    if isinstance(parsed, ParseFailure):
        return fallback_outcome(text, dialogue, cfg, reason=parsed.reason)

    diagnostics: List[str] = []
    if parsed.skipped:
        diagnostics.append(f"Skipped {parsed.skipped} malformed corrections.")
    ai_corrections, rejected = normalize_corrections(
        text, parsed.items, dialogue, cfg.default_ai_confidence
    )
    if rejected:
        diagnostics.append(f"Rejected {rejected} corrections that could not be applied safely.")

    rule_corrections = apply_fallback_rules(
        text,
        dialogue,
        cfg.fallback_confidence,
        covered=[correction.span for correction in ai_corrections],
    )
    merged = sorted(ai_corrections + rule_corrections, key=lambda c: c.span.start)
    logger.info(
        "Corrector returned %s usable corrections (%s rejected), %s added by rules",
        len(ai_corrections),
        rejected,
        len(rule_corrections),
    )
    return CorrectionOutcome(
        corrected_text=apply_corrections(text, merged),
        corrections=merged,
        source=SOURCE_LLM,
        diagnostics=diagnostics,
        usage=payload.usage,
    )


def fallback_outcome(
    text: str,
    dialogue: Sequence[DialogueSpan],
    config: AnalyzerConfig,
    reason: str | None = None,
) -> CorrectionOutcome:
    """Correct ``text`` with the rule table only."""
    diagnostics: List[str] = []
    if reason:
        logger.warning("Falling back to rule-based corrections: %s", reason)
        diagnostics.append(f"Rule-based corrections used: {reason}")
    corrections = apply_fallback_rules(text, dialogue, config.fallback_confidence)
    return CorrectionOutcome(
        corrected_text=apply_corrections(text, corrections),
        corrections=corrections,
        source=SOURCE_RULES,
        diagnostics=diagnostics,
    )


def apply_fallback_rules(
    text: str,
    dialogue: Sequence[DialogueSpan] = (),
    confidence: float = 0.75,
    covered: Iterable[Span] = (),
) -> List[Correction]:
    """Replace known typos, whole words only, keeping the original casing."""
    taken = list(covered)
    corrections: List[Correction] = []
    for match in TYPO_PATTERN.finditer(text):
        span = Span(match.start(), match.end())
        if any(existing.overlaps(span) for existing in taken):
            continue
        original = match.group()
        corrections.append(
            Correction(
                original=original,
                corrected=_match_case(original, COMMON_TYPOS[original.lower()]),
                kind=_dialogue_safe_kind(CorrectionKind.TYPO, span, dialogue),
                span=span,
                confidence=confidence,
                source=SOURCE_RULES,
            )
        )
    return corrections


def normalize_corrections(
    text: str,
    items: Iterable[CorrectionItem],
    dialogue: Sequence[DialogueSpan],
    default_confidence: float = 0.9,
) -> tuple[List[Correction], int]:
    """
    Turn suggested corrections into span-addressed Correction records.

    Suggestions are dropped when their kind is unknown, their original text
    cannot be found, they overlap an earlier suggestion, or they would change
    grammar inside dialogue. Returns the accepted corrections and the number
    dropped.
    """
    accepted: List[Correction] = []
    rejected = 0
    for item in items:
        try:
            kind = CorrectionKind(item.kind.strip().lower())
        except ValueError:
            logger.debug("Unknown correction kind %r", item.kind)
            rejected += 1
            continue
        if item.original == item.corrected:
            continue
        hint = item.position.start if item.position else None
        if item.position and item.position.end > item.position.start:
            span = Span(item.position.start, item.position.end)
            if span.end > len(text) or span.extract(text) != item.original:
                span = _locate(text, item.original, hint)
        else:
            span = _locate(text, item.original, hint)
        if span is None:
            logger.debug("Could not locate %r in text", item.original)
            rejected += 1
            continue
        kind = _dialogue_safe_kind(kind, span, dialogue)
        if kind not in DIALOGUE_SAFE_KINDS and span_in_dialogue(span, dialogue):
            logger.warning(
                "Rejected %s correction inside dialogue at [%s, %s)",
                kind.value,
                span.start,
                span.end,
            )
            rejected += 1
            continue
        if any(existing.span.overlaps(span) for existing in accepted):
            rejected += 1
            continue
        confidence = default_confidence if item.confidence is None else item.confidence
        accepted.append(
            Correction(
                original=item.original,
                corrected=item.corrected,
                kind=kind,
                span=span,
                confidence=min(1.0, max(0.0, float(confidence))),
                source=SOURCE_LLM,
            )
        )
    accepted.sort(key=lambda correction: correction.span.start)
    return accepted, rejected


def apply_corrections(text: str, corrections: Iterable[Correction]) -> str:
    """Apply non-overlapping corrections to the original text."""
    pieces: List[str] = []
    cursor = 0
    for correction in sorted(corrections, key=lambda c: c.span.start):
        if correction.span.start < cursor:
            continue
        pieces.append(text[cursor : correction.span.start])
        pieces.append(correction.corrected)
        cursor = correction.span.end
    pieces.append(text[cursor:])
    return "".join(pieces)


def _dialogue_safe_kind(
    kind: CorrectionKind, span: Span, dialogue: Sequence[DialogueSpan]
) -> CorrectionKind:
    # A typo fix in dialogue only changes spelling, so it is reported as such.
    if kind is CorrectionKind.TYPO and span_in_dialogue(span, dialogue):
        return CorrectionKind.SPELLING
    return kind


def _locate(text: str, original: str, hint: int | None) -> Span | None:
    prefix = r"(?<!\w)" if original[:1].isalnum() else ""
    suffix = r"(?!\w)" if original[-1:].isalnum() else ""
    pattern = re.compile(prefix + re.escape(original) + suffix)
    spans = [Span(m.start(), m.end()) for m in pattern.finditer(text)]
    if not spans:
        return None
    if hint is None:
        return spans[0]
    return min(spans, key=lambda span: abs(span.start - hint))


def _match_case(source: str, replacement: str) -> str:
    if len(source) > 1 and source.isupper():
        return replacement.upper()
    if source[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement
