from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    PERSON = "person"
    PLACE = "place"
    OTHER = "other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CorrectionKind(str, Enum):
    TYPO = "typo"
    SPELLING = "spelling"
    PUNCTUATION = "punctuation"
    QUOTATION = "quotation"
    GRAMMAR = "grammar"
    CONSISTENCY = "consistency"


class HighlightKind(str, Enum):
    REPETITION = "repetition"
    AWKWARD_PHRASING = "awkward-phrasing"
    INCONSISTENCY = "inconsistency"


# Kinds that may touch text inside quoted dialogue.
DIALOGUE_SAFE_KINDS = frozenset({CorrectionKind.SPELLING, CorrectionKind.QUOTATION})


@dataclass(slots=True, frozen=True)
class Span:
    """Half-open character range into the original chapter text."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end <= self.start:
            raise ValueError(f"Invalid span [{self.start}, {self.end})")

    @property
    def length(self) -> int:
        return self.end - self.start

    def contains(self, other: "Span") -> bool:
        return self.start <= other.start and other.end <= self.end

    def overlaps(self, other: "Span") -> bool:
        return self.start < other.end and other.start < self.end

    def extract(self, text: str) -> str:
        return text[self.start : self.end]


@dataclass(slots=True, frozen=True)
class Token:
    """A lowercased word token and where it sits in the original text."""

    word: str
    span: Span
    ordinal: int


@dataclass(slots=True)
class RepetitionOccurrence:
    span: Span
    ordinal: int


@dataclass(slots=True)
class RepetitionMatch:
    """Two consecutive occurrences of a word that sit too close together."""

    word: str
    occurrences: tuple[RepetitionOccurrence, RepetitionOccurrence]
    word_distance: int
    is_common_word: bool
    reason: str


@dataclass(slots=True)
class DialogueSpan:
    """A quoted passage plus its optional attribution tail."""

    span: Span
    quote_char: str
    text: str
    attribution: str = ""


@dataclass(slots=True)
class NamedEntity:
    """A name found in the chapter with every place it occurs."""

    name: str
    kind: EntityKind
    confidence: float
    occurrences: list[Span] = field(default_factory=list)


@dataclass(slots=True)
class TrackedName:
    """A name remembered for an author across chapters."""

    canonical_name: str
    kind: EntityKind = EntityKind.OTHER
    first_seen_chapter: int = 1
    variants: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.kind = EntityKind(self.kind)
        self.variants = list(self.variants)
        if self.canonical_name not in self.variants:
            self.variants.insert(0, self.canonical_name)

    def matches(self, name: str) -> bool:
        """Return True if ``name`` is this name or a known variant, ignoring case."""
        folded = name.casefold()
        return any(variant.casefold() == folded for variant in self.variants)


@dataclass(slots=True)
class ConsistencyFlag:
    """A chapter name that nearly, but not exactly, matches a tracked name."""

    candidate_name: str
    matched_tracked: str
    similarity: float
    occurrences: list[Span]
    severity: Severity


@dataclass(slots=True)
class Correction:
    """One accepted fix, located in the original text."""

    original: str
    corrected: str
    kind: CorrectionKind
    span: Span
    confidence: float
    source: str = "rules"


@dataclass(slots=True)
class AwkwardPhrase:
    """A reviewer-flagged phrase anchored to its span in the text."""

    phrase: str
    suggestion: str
    reason: str
    span: Span
    confidence: float = 0.7


@dataclass(slots=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass(slots=True)
class Highlight:
    """A span of the original text worth showing to the author, with why."""

    span: Span
    kind: HighlightKind
    text: str
    reason: str
    severity: Severity = Severity.MEDIUM
    suggestion: str | None = None


@dataclass(slots=True)
class ChapterSummary:
    """Correction summary lines plus optional literary feedback."""

    corrections: list[str] = field(default_factory=list)
    literary_feedback: str | None = None
    feedback_source: str = "none"
    usage: TokenUsage | None = None


@dataclass(slots=True)
class TextStatistics:
    word_count: int = 0
    character_count: int = 0
    sentence_count: int = 0
    paragraph_count: int = 0
    dialogue_ratio: float = 0.0


@dataclass(slots=True)
class AnalysisResult:
    """Everything produced by one chapter analysis run."""

    corrected_text: str
    corrections: list[Correction] = field(default_factory=list)
    repetitions: list[RepetitionMatch] = field(default_factory=list)
    dialogue: list[DialogueSpan] = field(default_factory=list)
    names: list[NamedEntity] = field(default_factory=list)
    consistency: list[ConsistencyFlag] = field(default_factory=list)
    statistics: TextStatistics = field(default_factory=TextStatistics)
    awkward_phrasing: list[AwkwardPhrase] = field(default_factory=list)
    highlights: list[Highlight] = field(default_factory=list)
    summary: ChapterSummary = field(default_factory=ChapterSummary)
    registry_updates: list[TrackedName] = field(default_factory=list)
    correction_source: str = "rules"
    diagnostics: list[str] = field(default_factory=list)
    token_usage: TokenUsage | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation of the result."""
        return _plain(asdict(self))


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value
