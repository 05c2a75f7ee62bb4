"""
Parsing of model responses.

Model output is untrusted: it may be wrapped in prose or Markdown fences, and
its fields may be missing or mistyped. Everything passes through
``parse_json_payload`` and a pydantic schema before the rest of the package
sees it. Correction responses come back as a tagged result, either
``ParsedCorrection`` or ``ParseFailure``, never an exception.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    ValidationError,
    model_validator,
)

from .errors import MalformedResponseError

logger = logging.getLogger(__name__)

FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class Position(BaseModel):
    start: int = Field(ge=0)
    end: int = Field(ge=0)


class _PositionedItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    position: Optional[Position] = None
    confidence: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def lift_flat_position(cls, data: Any) -> Any:
        # Models sometimes flatten {"position": {...}} into top-level start/end.
        if isinstance(data, dict) and "position" not in data and "start" in data:
            data = dict(data)
            data["position"] = {"start": data.pop("start"), "end": data.pop("end", None)}
        return data


class CorrectionItem(_PositionedItem):
    """One correction suggested by the model."""

    original: StrictStr = Field(min_length=1)
    corrected: StrictStr
    kind: StrictStr = Field(validation_alias=AliasChoices("type", "kind"))


class CorrectionEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    corrected_text: StrictStr = Field(
        validation_alias=AliasChoices("correctedText", "corrected_text")
    )
    corrections: List[Any]


class PhraseItem(_PositionedItem):
    """One awkward phrase flagged by the model."""

    phrase: StrictStr = Field(min_length=1)
    suggestion: str = ""
    reason: str = ""


@dataclass(slots=True)
class ParsedCorrection:
    corrected_text: str
    items: List[CorrectionItem] = field(default_factory=list)
    skipped: int = 0


@dataclass(slots=True)
class ParseFailure:
    reason: str


ParseResult = Union[ParsedCorrection, ParseFailure]


def json_candidates(raw: str, opener: str, closer: str) -> List[str]:
    """Candidate JSON substrings, most literal first."""
    stripped = raw.strip()
    candidates = [stripped]
    candidates.extend(block.strip() for block in FENCED_BLOCK_RE.findall(raw))
    start, end = raw.find(opener), raw.rfind(closer)
    if 0 <= start < end:
        candidates.append(raw[start : end + 1])
    return candidates


def parse_json_payload(raw: str, expected: type) -> Any:
    """
    Return the first JSON value of type ``expected`` found in ``raw``.

    Raises MalformedResponseError if nothing parses.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedResponseError("Response is empty.")
    opener, closer = ("[", "]") if expected is list else ("{", "}")
    for candidate in json_candidates(raw, opener, closer):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, expected):
            return value
    raise MalformedResponseError(
        f"No JSON {expected.__name__} found in response: {raw[:80]!r}"
    )


def parse_correction_response(raw: Any) -> ParseResult:
    """Validate a correction response into ParsedCorrection, or explain why not."""
    if isinstance(raw, dict):
        payload: Any = raw
    else:
        try:
            payload = parse_json_payload(raw, dict)
        except MalformedResponseError as exc:
            return ParseFailure(reason=str(exc))

    try:
        envelope = CorrectionEnvelope.model_validate(payload)
    except ValidationError as exc:
        return ParseFailure(reason=f"Correction response failed validation: {exc}")

    parsed = ParsedCorrection(corrected_text=envelope.corrected_text)
    for item in envelope.corrections:
        try:
            parsed.items.append(CorrectionItem.model_validate(item))
        except ValidationError as exc:
            parsed.skipped += 1
            logger.debug("Skipping malformed correction %r: %s", item, exc)
    return parsed


def parse_phrase_response(raw: Any) -> List[PhraseItem]:
    """Validate an awkward-phrasing response; malformed items are dropped."""
    items = raw if isinstance(raw, list) else parse_json_payload(raw, list)
    phrases: List[PhraseItem] = []
    for item in items:
        try:
            phrases.append(PhraseItem.model_validate(item))
        except ValidationError as exc:
            logger.debug("Skipping malformed phrase %r: %s", item, exc)
    return phrases
