from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Sequence

from .config import AnalyzerConfig
from .errors import ExternalCapabilityFailure
from .llm.openai_client import (
    CompletionResult,
    OpenAICompletionClient,
    RequestMetadata,
    resolve_api_key,
)
from .models import (
    AwkwardPhrase,
    ChapterSummary,
    ConsistencyFlag,
    Correction,
    Highlight,
    HighlightKind,
    RepetitionMatch,
    Severity,
    TokenUsage,
)

logger = logging.getLogger(__name__)

FEEDBACK_EXCERPT_CHARS = 2000
FALLBACK_FEEDBACK = "Unable to generate feedback at this time."

FEEDBACK_PROMPT_TEMPLATE = (
    "Analyze this fiction chapter and provide a brief literary assessment:\n"
    "\n"
    "Chapter content: {excerpt}...\n"
    "\n"
    "Provide a 1-2 sentence comment focusing on:\n"
    "- Story progression and pacing\n"
    "- Character development\n"
    "- Readability and flow\n"
    "- Literary merit\n"
    "\n"
    "Be constructive and encouraging while noting areas for improvement."
)


class SummaryWriter(ABC):
    """External capability that writes short literary feedback on a chapter."""

    @abstractmethod
    def feedback(self, text: str) -> Any:
        """Return the feedback as a string or a ``CompletionResult``."""
        raise NotImplementedError


class OpenAISummaryWriter(SummaryWriter):
    def __init__(self, client: OpenAICompletionClient) -> None:
        self._client = client

    def feedback(self, text: str) -> Any:
        excerpt = text[:FEEDBACK_EXCERPT_CHARS]
        return self._client.complete(
            system_prompt="You are an encouraging fiction editor.",
            user_prompt=FEEDBACK_PROMPT_TEMPLATE.format(excerpt=excerpt),
            metadata=RequestMetadata(purpose="summary", char_count=len(excerpt)),
        )


def build_summary_writer_from_config(config: AnalyzerConfig) -> SummaryWriter | None:
    if not (config.summary_enabled and config.openai.enabled):
        return None
    api_key = resolve_api_key(config.openai)
    return OpenAISummaryWriter(OpenAICompletionClient(config.openai, api_key=api_key))


def request_feedback(
    text: str, writer: SummaryWriter | None
) -> tuple[str | None, str, TokenUsage | None]:
    """
    Ask ``writer`` for literary feedback on ``text``.

    Returns ``(feedback, source, usage)``. Without a writer the feedback is
    None; a failing or empty answer yields ``FALLBACK_FEEDBACK``.
    """
    if writer is None or not text.strip():
        return None, "none", None
    try:
        answer = writer.feedback(text)
    except ExternalCapabilityFailure as exc:
        logger.warning("Literary feedback unavailable: %s", exc)
        return FALLBACK_FEEDBACK, "fallback", None
    except Exception:
        logger.exception("Summary writer raised unexpectedly")
        return FALLBACK_FEEDBACK, "fallback", None

    usage = None
    if isinstance(answer, CompletionResult):
        answer, usage = answer.text, answer.usage
    feedback = answer.strip() if isinstance(answer, str) else ""
    if not feedback:
        logger.warning("Summary writer returned no feedback")
        return FALLBACK_FEEDBACK, "fallback", usage
    return feedback, "llm", usage


def summarize_corrections(corrections: Iterable[Correction]) -> List[str]:
    """One ``Fixed <kind>: "<original>" → "<corrected>"`` line per correction."""
    return [
        f'Fixed {correction.kind.value}: "{correction.original}" → "{correction.corrected}"'
        for correction in corrections
    ]


def build_summary(
    corrections: Sequence[Correction],
    feedback: str | None = None,
    feedback_source: str = "none",
    usage: TokenUsage | None = None,
) -> ChapterSummary:
    return ChapterSummary(
        corrections=summarize_corrections(corrections),
        literary_feedback=feedback,
        feedback_source=feedback_source,
        usage=usage,
    )


def build_highlights(
    text: str,
    repetitions: Iterable[RepetitionMatch] = (),
    awkward: Iterable[AwkwardPhrase] = (),
    consistency: Iterable[ConsistencyFlag] = (),
) -> List[Highlight]:
    """
    Merge the findings of one analysis into a single list of text highlights.

    Each repetition occurrence, awkward phrase and inconsistent name
    occurrence becomes one highlight. Repetitions and phrasing are ``medium``
    severity; inconsistencies carry the severity of their flag. Highlights are
    ordered by start offset; a repeated occurrence shared by two adjacent
    pairs is reported once.
    """
    highlights: List[Highlight] = []
    seen_repetitions: set[tuple[int, int]] = set()
    for match in repetitions:
        for occurrence in match.occurrences:
            key = (occurrence.span.start, occurrence.span.end)
            if key in seen_repetitions:
                continue
            seen_repetitions.add(key)
            highlights.append(
                Highlight(
                    span=occurrence.span,
                    kind=HighlightKind.REPETITION,
                    text=occurrence.span.extract(text),
                    reason=match.reason,
                )
            )
    for phrase in awkward:
        highlights.append(
            Highlight(
                span=phrase.span,
                kind=HighlightKind.AWKWARD_PHRASING,
                text=phrase.phrase,
                reason=phrase.reason,
                suggestion=phrase.suggestion or None,
            )
        )
    for flag in consistency:
        reason = (
            f'"{flag.candidate_name}" may be a misspelling of "{flag.matched_tracked}" '
            f"(similarity {flag.similarity:.2f})"
        )
        for span in flag.occurrences:
            highlights.append(
                Highlight(
                    span=span,
                    kind=HighlightKind.INCONSISTENCY,
                    text=span.extract(text),
                    reason=reason,
                    severity=Severity(flag.severity),
                )
            )
    highlights.sort(key=lambda item: (item.span.start, item.span.end))
    return highlights
