from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, List

from .config import AnalyzerConfig
from .errors import ExternalCapabilityFailure
from .llm.openai_client import (
    OpenAICompletionClient,
    RequestMetadata,
    resolve_api_key,
)
from .models import AwkwardPhrase, Span
from .responses import parse_phrase_response

logger = logging.getLogger(__name__)

PHRASING_PROMPT_TEMPLATE = (
    "Analyze this fiction text and identify up to {limit} awkwardly worded "
    "sentences or phrases. Focus on:\n"
    "- Unclear or confusing sentence structure\n"
    "- Overly complex or convoluted phrasing\n"
    "- Unnatural dialogue attribution\n"
    "- Passive voice where active would be better\n"
    "- Redundant or unnecessarily wordy expressions\n"
    "\n"
    "Text:\n"
    "{text}\n"
    "\n"
    "Return only a JSON array of up to {limit} items:\n"
    '[{{"phrase": "the awkward phrase, quoted exactly", '
    '"suggestion": "suggested improvement", "reason": "why it is awkward", '
    '"start": 0, "end": 50}}]'
)


class PhrasingReviewer(ABC):
    """External capability that flags awkwardly worded phrases."""

    @abstractmethod
    def review(self, text: str, limit: int) -> Any:
        """Return the raw answer, a JSON array or a string containing one."""
        raise NotImplementedError


class OpenAIPhrasingReviewer(PhrasingReviewer):
    def __init__(self, client: OpenAICompletionClient) -> None:
        self._client = client

    def review(self, text: str, limit: int) -> Any:
        result = self._client.complete(
            system_prompt="You are a careful fiction editor.",
            user_prompt=PHRASING_PROMPT_TEMPLATE.format(limit=limit, text=text),
            metadata=RequestMetadata(purpose="phrasing", char_count=len(text)),
        )
        return result.text


def build_reviewer_from_config(config: AnalyzerConfig) -> PhrasingReviewer | None:
    if not (config.phrasing_enabled and config.openai.enabled):
        return None
    api_key = resolve_api_key(config.openai)
    return OpenAIPhrasingReviewer(OpenAICompletionClient(config.openai, api_key=api_key))


def review_phrasing(
    text: str,
    reviewer: PhrasingReviewer | None,
    limit: int = 3,
) -> List[AwkwardPhrase]:
    """
    Ask ``reviewer`` for awkward phrases and anchor them in ``text``.

    Phrases that do not occur verbatim are dropped. Review is advisory, so
    any failure yields an empty list.
    """
    if reviewer is None or limit < 1 or not text.strip():
        return []
    try:
        items = parse_phrase_response(reviewer.review(text, limit))
    except ExternalCapabilityFailure as exc:
        logger.warning("Phrasing review unavailable: %s", exc)
        return []
    except Exception:
        logger.exception("Phrasing reviewer raised unexpectedly")
        return []

    phrases: List[AwkwardPhrase] = []
    for item in items:
        span = _anchor(text, item.phrase, item.position.start if item.position else None)
        if span is None:
            logger.debug("Awkward phrase %r not found in text", item.phrase)
            continue
        if any(existing.span.overlaps(span) for existing in phrases):
            continue
        phrases.append(
            AwkwardPhrase(
                phrase=item.phrase,
                suggestion=item.suggestion,
                reason=item.reason,
                span=span,
                confidence=0.7 if item.confidence is None else min(1.0, max(0.0, item.confidence)),
            )
        )
        if len(phrases) >= limit:
            break
    return phrases


def _anchor(text: str, phrase: str, hint: int | None) -> Span | None:
    if hint is not None and text.startswith(phrase, hint):
        return Span(hint, hint + len(phrase))
    start = text.find(phrase)
    if start < 0:
        return None
    return Span(start, start + len(phrase))
