from __future__ import annotations

import logging
import re
from typing import Dict, List, Tuple

from .models import EntityKind, NamedEntity, Span
from .taggers import EntityTagger, HeuristicEntityTagger

logger = logging.getLogger(__name__)

PERSON_CONFIDENCE = 0.8
PLACE_CONFIDENCE = 0.8
PROPER_NOUN_CONFIDENCE = 0.6
MIN_NAME_LENGTH = 2


def extract_names(text: str, tagger: EntityTagger | None = None) -> List[NamedEntity]:
    """
    Collapse tagger output into one entity per distinct surface form.

    People and places come from the tagger's dedicated passes; anything it only
    reports as a generic proper noun is kept with lower confidence. Every
    whole-word, case-sensitive occurrence of the surface form is reported.
    """
    if not text.strip():
        return []
    active = tagger or HeuristicEntityTagger()

    classified: Dict[str, Tuple[EntityKind, float]] = {}
    passes = (
        (active.tag_people(text), EntityKind.PERSON, PERSON_CONFIDENCE),
        (active.tag_places(text), EntityKind.PLACE, PLACE_CONFIDENCE),
        (active.tag_proper_nouns(text), EntityKind.OTHER, PROPER_NOUN_CONFIDENCE),
    )
    for tagged_batch, kind, confidence in passes:
        for tagged in tagged_batch:
            surface = tagged.surface.strip()
            if len(surface) < MIN_NAME_LENGTH or surface in classified:
                continue
            classified[surface] = (kind, confidence)

    entities: List[NamedEntity] = []
    for surface, (kind, confidence) in classified.items():
        occurrences = find_occurrences(text, surface)
        if not occurrences:
            logger.debug("Tagger reported %r but it does not occur verbatim", surface)
            continue
        entities.append(
            NamedEntity(
                name=surface,
                kind=kind,
                confidence=confidence,
                occurrences=occurrences,
            )
        )
    entities.sort(key=lambda entity: (entity.occurrences[0].start, entity.name))
    return entities


def find_occurrences(text: str, surface: str) -> List[Span]:
    """Return every whole-word, case-sensitive occurrence of ``surface``."""
    pattern = re.compile(rf"(?<!\w){re.escape(surface)}(?!\w)")
    return [Span(match.start(), match.end()) for match in pattern.finditer(text)]
