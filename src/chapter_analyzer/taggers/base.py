from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from ..models import EntityKind, Span


@dataclass(slots=True, frozen=True)
class TaggedEntity:
    """One tagged occurrence of a name in the text."""

    surface: str
    kind: EntityKind
    span: Span


class EntityTagger(ABC):
    """Abstract tagger that finds people, places, and other proper nouns."""

    @abstractmethod
    def tag_people(self, text: str) -> List[TaggedEntity]:
        raise NotImplementedError

    @abstractmethod
    def tag_places(self, text: str) -> List[TaggedEntity]:
        raise NotImplementedError

    @abstractmethod
    def tag_proper_nouns(self, text: str) -> List[TaggedEntity]:
        """Return proper nouns; may overlap with people and places."""
        raise NotImplementedError

    def tag(self, text: str) -> List[TaggedEntity]:
        return self.tag_people(text) + self.tag_places(text) + self.tag_proper_nouns(text)
