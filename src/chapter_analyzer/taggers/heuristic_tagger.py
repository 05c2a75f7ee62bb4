from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List

import regex as re

from ..dialogue import SPEECH_VERBS
from ..models import EntityKind, Span
from .base import EntityTagger, TaggedEntity

# One capitalized word: Zoë, O'Brien, McDonald, Anne-Marie.
_PART = r"\p{Lu}[\p{Ll}\p{M}]+"
_WORD = rf"(?:\p{{Lu}}['’])?(?:{_PART})+(?:-(?:{_PART})+)*"
NAME_RUN_RE = re.compile(rf"(?<![\p{{L}}\p{{M}}\p{{N}}]){_WORD}(?:[ \t]+{_WORD})*")
WORD_RE = re.compile(_WORD)
PREVIOUS_WORD_RE = re.compile(r"(\w+)[^\w.!?\n]*$")
NEXT_WORD_RE = re.compile(r"^[^\w.!?\n]*(\w+)")

# Capitalized words that are not names on their own.
NON_NAME_WORDS = frozenset(
    {
        "A", "An", "The", "This", "That", "These", "Those", "He", "She", "It",
        "They", "We", "You", "His", "Her", "Hers", "Its", "Their", "Our", "My",
        "Your", "Him", "Them", "Me", "Us", "But", "And", "Or", "Nor", "So",
        "Yet", "Then", "When", "While", "Where", "What", "Who", "Why", "How",
        "If", "As", "At", "In", "On", "Of", "To", "For", "With", "From", "By",
        "After", "Before", "Once", "Now", "Still", "Just", "Even", "All",
        "Some", "Every", "Each", "No", "Not", "Yes", "Oh", "Ah", "Well",
        "Okay", "Hello", "Hi", "Hey", "Goodbye", "Please", "Thanks", "Sorry",
        "There", "Here", "Maybe", "Perhaps", "Later", "Soon", "Suddenly",
    }
)

TITLES = frozenset(
    {
        "Mr", "Mrs", "Ms", "Miss", "Dr", "Sir", "Madam", "Lady", "Lord",
        "Captain", "Professor", "King", "Queen", "Prince", "Princess", "Aunt",
        "Uncle", "General", "Sergeant", "Father", "Mother", "Sister", "Brother",
    }
)

PLACE_SUFFIXES = frozenset(
    {
        "City", "Town", "Village", "Street", "Road", "Lane", "Avenue", "River",
        "Lake", "Sea", "Ocean", "Mountain", "Mountains", "Hill", "Hills",
        "Forest", "Woods", "Castle", "Kingdom", "Empire", "Isle", "Island",
        "Bay", "Valley", "Hall", "Tower", "Keep", "Harbor", "Port", "Bridge",
        "Park", "Square", "Abbey", "Manor",
    }
)

PLACE_PREPOSITIONS = frozenset(
    {"in", "at", "from", "into", "toward", "towards", "near", "across", "through"}
)

_SPEECH_VERBS = frozenset(SPEECH_VERBS)
_LEADING_SKIP = NON_NAME_WORDS | TITLES
_SENTENCE_ENDINGS = ".!?\n"
_SKIPPABLE = " \t\"'“”‘’(["


@dataclass(slots=True)
class _Occurrence:
    surface: str
    span: Span
    sentence_initial: bool
    person_cue: bool
    place_cue: bool


class HeuristicEntityTagger(EntityTagger):
    """
    Dependency-free tagger built on capitalization.

    A run of capitalized words is a name candidate. Candidates that only ever
    appear at the start of a sentence are dropped, unless something around
    them (a title, a speech verb, a place preposition) marks them as a name.
    Titles and speech verbs mark people; place suffixes and locative
    prepositions mark places.
    """

    def tag_people(self, text: str) -> List[TaggedEntity]:
        return self._tagged(text, EntityKind.PERSON)

    def tag_places(self, text: str) -> List[TaggedEntity]:
        return self._tagged(text, EntityKind.PLACE)

    def tag_proper_nouns(self, text: str) -> List[TaggedEntity]:
        return self._tagged(text, EntityKind.OTHER)

    def _tagged(self, text: str, kind: EntityKind) -> List[TaggedEntity]:
        grouped = self._classify(text)
        return [
            TaggedEntity(surface=occurrence.surface, kind=kind, span=occurrence.span)
            for surface_kind, occurrences in grouped
            if surface_kind == kind
            for occurrence in occurrences
        ]

    def _classify(self, text: str) -> List[tuple[EntityKind, List[_Occurrence]]]:
        by_surface: Dict[str, List[_Occurrence]] = defaultdict(list)
        for occurrence in self._scan(text):
            by_surface[occurrence.surface].append(occurrence)

        classified: List[tuple[EntityKind, List[_Occurrence]]] = []
        for surface, occurrences in by_surface.items():
            person = any(o.person_cue for o in occurrences)
            place = any(o.place_cue for o in occurrences)
            if not (person or place) and all(o.sentence_initial for o in occurrences):
                continue
            if person:
                kind = EntityKind.PERSON
            elif place:
                kind = EntityKind.PLACE
            else:
                kind = EntityKind.OTHER
            classified.append((kind, occurrences))
        return classified

    def _scan(self, text: str) -> List[_Occurrence]:
        occurrences: List[_Occurrence] = []
        for run in NAME_RUN_RE.finditer(text):
            words = list(WORD_RE.finditer(text, run.start(), run.end()))
            titled = False
            while words and words[0].group() in _LEADING_SKIP:
                titled = titled or words[0].group() in TITLES
                words.pop(0)
            if not words:
                continue
            start, end = words[0].start(), words[-1].end()
            surface = text[start:end]
            before, after = text[max(0, start - 40) : start], text[end : end + 40]
            previous_word = _previous_word(before)
            next_word = _next_word(after)
            titled = titled or _follows_title(before)
            occurrences.append(
                _Occurrence(
                    surface=surface,
                    span=Span(start, end),
                    sentence_initial=start == run.start()
                    and _is_sentence_initial(text, start),
                    person_cue=titled
                    or previous_word in _SPEECH_VERBS
                    or next_word in _SPEECH_VERBS,
                    place_cue=previous_word in PLACE_PREPOSITIONS
                    or words[-1].group() in PLACE_SUFFIXES,
                )
            )
        return occurrences


def _is_sentence_initial(text: str, start: int) -> bool:
    idx = start - 1
    while idx >= 0 and text[idx] in _SKIPPABLE:
        idx -= 1
    return idx < 0 or text[idx] in _SENTENCE_ENDINGS


def _previous_word(before: str) -> str:
    match = PREVIOUS_WORD_RE.search(before)
    return match.group(1).lower() if match else ""


def _next_word(after: str) -> str:
    match = NEXT_WORD_RE.search(after)
    return match.group(1).lower() if match else ""


def _follows_title(before: str) -> bool:
    match = re.search(r"\b(\p{Lu}\p{Ll}+)\.?[ \t]+$", before[-20:])
    return bool(match and match.group(1) in TITLES)
