from __future__ import annotations

import importlib
import threading
from typing import Any, List, cast

from ..models import EntityKind, Span
from .base import EntityTagger, TaggedEntity

spacy: Any | None = None

PERSON_LABELS = frozenset({"PERSON"})
PLACE_LABELS = frozenset({"GPE", "LOC", "FAC"})


class SpacyEntityTagger(EntityTagger):
    """
    Adapter around a spaCy pipeline with a named-entity recognizer.

    PERSON entities are people; GPE, LOC and FAC entities are places. Runs of
    PROPN tokens outside any recognized entity become generic proper nouns.
    """

    def __init__(self, model: str = "en_core_web_sm", nlp: Any | None = None) -> None:
        if nlp is None:
            spacy_module = _ensure_spacy()
            nlp = spacy_module.load(model)
        self.nlp = nlp
        self._cached_text: str | None = None
        self._cached_doc: Any | None = None
        self._lock = threading.Lock()

    def tag_people(self, text: str) -> List[TaggedEntity]:
        return self._entities(text, PERSON_LABELS, EntityKind.PERSON)

    def tag_places(self, text: str) -> List[TaggedEntity]:
        return self._entities(text, PLACE_LABELS, EntityKind.PLACE)

    def tag_proper_nouns(self, text: str) -> List[TaggedEntity]:
        doc = self._parse(text)
        covered = {token.i for ent in doc.ents for token in ent}
        tagged: List[TaggedEntity] = []
        run: List[Any] = []
        for token in list(doc) + [None]:
            if token is not None and token.pos_ == "PROPN" and token.i not in covered:
                run.append(token)
                continue
            if run:
                start, end = run[0].idx, run[-1].idx + len(run[-1].text)
                tagged.append(
                    TaggedEntity(
                        surface=text[start:end],
                        kind=EntityKind.OTHER,
                        span=Span(start, end),
                    )
                )
                run = []
        return tagged

    def _entities(
        self, text: str, labels: frozenset[str], kind: EntityKind
    ) -> List[TaggedEntity]:
        doc = self._parse(text)
        return [
            TaggedEntity(
                surface=ent.text, kind=kind, span=Span(ent.start_char, ent.end_char)
            )
            for ent in doc.ents
            if ent.label_ in labels and ent.end_char > ent.start_char
        ]

    def _parse(self, text: str) -> Any:
        # The three tag_* calls for one chapter share a single parse.
        with self._lock:
            if self._cached_text != text:
                self._cached_doc = self.nlp(text)
                self._cached_text = text
            return self._cached_doc


def _ensure_spacy() -> Any:
    global spacy
    if spacy is not None:
        return spacy
    try:  # pragma: no cover - import guard
        spacy_module = cast(Any, importlib.import_module("spacy"))
    except Exception as exc:  # pragma: no cover - import guard
        raise ImportError(
            "spaCy is required for SpacyEntityTagger. "
            "Install the 'spacy' extra via `pip install .[spacy]`."
        ) from exc
    spacy = spacy_module
    return spacy
