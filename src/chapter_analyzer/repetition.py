from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from .config import AnalyzerConfig
from .models import RepetitionMatch, RepetitionOccurrence, Token
from .tokenization import TokenSequence

logger = logging.getLogger(__name__)

# Function words and everyday dialogue verbs. These repeat naturally in prose,
# so they get the tighter window.
COMMON_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "up", "about", "into", "through", "during",
        "before", "after", "above", "below", "between", "among", "while",
        "until", "since", "without", "under", "over", "again", "further",
        "then", "once", "here", "there", "when", "where", "why", "how", "all",
        "any", "both", "each", "few", "more", "most", "other", "some", "such",
        "no", "nor", "not", "only", "own", "same", "so", "than", "too", "very",
        "s", "t", "can", "will", "just", "don", "should", "now", "he", "she",
        "it", "they", "them", "their", "his", "her", "its", "i", "you", "we",
        "us", "me", "my", "your", "our", "am", "is", "are", "was", "were", "be",
        "been", "being", "have", "has", "had", "do", "does", "did", "get",
        "got", "go", "went", "come", "came", "see", "saw", "look", "looked",
        "take", "took", "give", "gave", "make", "made", "know", "knew",
        "think", "thought", "say", "said", "tell", "told", "ask", "asked",
    }
)


def is_common_word(word: str) -> bool:
    return word.lower() in COMMON_WORDS


def detect_repetitions(
    source: str | Iterable[Token], config: AnalyzerConfig | None = None
) -> List[RepetitionMatch]:
    """
    Report consecutive occurrences of the same word that fall within the
    word's window. Common words use ``common_word_window``; everything else
    uses the wider ``uncommon_word_window``.
    """
    cfg = config or AnalyzerConfig()
    tokens = TokenSequence(source) if isinstance(source, str) else source

    positions: Dict[str, List[Token]] = defaultdict(list)
    for token in tokens:
        if len(token.word) < cfg.min_word_length:
            continue
        positions[token.word].append(token)

    matches: List[RepetitionMatch] = []
    for word, occurrences in positions.items():
        if len(occurrences) < 2:
            continue
        common = is_common_word(word)
        window = cfg.common_word_window if common else cfg.uncommon_word_window
        for first, second in zip(occurrences, occurrences[1:]):
            distance = second.ordinal - first.ordinal
            if distance <= 0 or distance > window:
                continue
            matches.append(
                RepetitionMatch(
                    word=word,
                    occurrences=(
                        RepetitionOccurrence(span=first.span, ordinal=first.ordinal),
                        RepetitionOccurrence(span=second.span, ordinal=second.ordinal),
                    ),
                    word_distance=distance,
                    is_common_word=common,
                    reason=f'"{word}" repeated {distance} words apart',
                )
            )

    matches.sort(key=lambda match: (match.occurrences[0].ordinal, match.word))
    logger.debug("Found %s repetition pairs", len(matches))
    return matches
