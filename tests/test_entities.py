from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

import pytest

from chapter_analyzer.entities import extract_names, find_occurrences
from chapter_analyzer.models import EntityKind, Span
from chapter_analyzer.taggers import (
    EntityTagger,
    HeuristicEntityTagger,
    SpacyEntityTagger,
    TaggedEntity,
    create_tagger,
)
from tests.utils import SCENARIO_TEXT


def _summary(text: str, tagger: EntityTagger | None = None) -> list[tuple[str, str]]:
    return [(entity.name, entity.kind.value) for entity in extract_names(text, tagger)]


def test_scenario_name_is_a_person_with_every_occurrence():
    names = extract_names(SCENARIO_TEXT)

    assert len(names) == 1
    ana = names[0]
    assert ana.name == "Ana"
    assert ana.kind is EntityKind.PERSON
    assert ana.confidence == pytest.approx(0.8)
    assert [span.extract(SCENARIO_TEXT) for span in ana.occurrences] == ["Ana", "Ana"]


def test_sentence_initial_words_without_cues_are_dropped():
    assert extract_names("Suddenly the door opened. Nothing moved.") == []


def test_places_from_prepositions_and_suffixes():
    text = "Mira left home. She had lived in Riverton and crossed the Silver River."

    assert _summary(text) == [("Riverton", "place"), ("Silver River", "place")]


def test_titles_mark_people_and_are_stripped():
    text = "The note was signed by Dr. Watson and Mrs Hudson."

    assert _summary(text) == [("Watson", "person"), ("Hudson", "person")]


def test_uncued_mid_sentence_names_are_generic_proper_nouns():
    names = extract_names("She wrote to the Ministry twice.")

    assert [(n.name, n.kind, n.confidence) for n in names] == [
        ("Ministry", EntityKind.OTHER, pytest.approx(0.6))
    ]


def test_accented_names_are_kept_whole():
    text = '"Hello," said Zoë. Then Zoë walked to Málaga with Renée.'

    assert _summary(text) == [("Zoë", "person"), ("Málaga", "other"), ("Renée", "other")]
    zoe = extract_names(text)[0]
    assert [span.extract(text) for span in zoe.occurrences] == ["Zoë", "Zoë"]


def test_names_with_internal_capitals():
    text = "The letter was from Mrs McDonald, who lived in Inverness."

    assert _summary(text) == [("McDonald", "person"), ("Inverness", "place")]


def test_multi_word_place():
    assert _summary("They sailed toward Port Royal at dawn.") == [("Port Royal", "place")]


def test_empty_text_has_no_names():
    assert extract_names("") == []
    assert extract_names("   ") == []


def test_surfaces_missing_from_text_are_dropped():
    class InventiveTagger(EntityTagger):
        def tag_people(self, text: str) -> List[TaggedEntity]:
            return [TaggedEntity("Zed", EntityKind.PERSON, Span(0, 3))]

        def tag_places(self, text: str) -> List[TaggedEntity]:
            return []

        def tag_proper_nouns(self, text: str) -> List[TaggedEntity]:
            return []

    assert extract_names("Ana walked home.", InventiveTagger()) == []


def test_find_occurrences_is_whole_word_and_case_sensitive():
    text = "Ana and Anabel met ana and Ana."

    assert find_occurrences(text, "Ana") == [Span(0, 3), Span(27, 30)]


def test_create_tagger_by_name():
    assert isinstance(create_tagger("Heuristic"), HeuristicEntityTagger)
    with pytest.raises(ValueError):
        create_tagger("unknown")


@dataclass
class FakeToken:
    i: int
    text: str
    idx: int
    pos_: str


@dataclass
class FakeEnt:
    text: str
    label_: str
    start_char: int
    end_char: int
    tokens: List[FakeToken] = field(default_factory=list)

    def __iter__(self):
        return iter(self.tokens)


class FakeDoc:
    def __init__(self, tokens: List[FakeToken], ents: List[FakeEnt]) -> None:
        self._tokens = tokens
        self.ents = ents

    def __iter__(self):
        return iter(self._tokens)


class FakeNlp:
    """Stands in for a loaded spaCy pipeline on one fixed sentence."""

    text = "Ana sailed to Lisbon with the Order."

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, text: str) -> Any:
        assert text == self.text
        self.calls += 1
        words = [
            ("Ana", 0, "PROPN"),
            ("sailed", 4, "VERB"),
            ("to", 11, "ADP"),
            ("Lisbon", 14, "PROPN"),
            ("with", 21, "ADP"),
            ("the", 26, "DET"),
            ("Order", 30, "PROPN"),
            (".", 35, "PUNCT"),
        ]
        tokens = [FakeToken(i, word, idx, pos) for i, (word, idx, pos) in enumerate(words)]
        ents = [
            FakeEnt("Ana", "PERSON", 0, 3, [tokens[0]]),
            FakeEnt("Lisbon", "GPE", 14, 20, [tokens[3]]),
        ]
        return FakeDoc(tokens, ents)


def test_spacy_tagger_maps_entity_labels():
    nlp = FakeNlp()
    tagger = SpacyEntityTagger(nlp=nlp)

    assert _summary(nlp.text, tagger) == [
        ("Ana", "person"),
        ("Lisbon", "place"),
        ("Order", "other"),
    ]
    assert nlp.calls == 1


def test_spacy_tagger_requires_spacy_when_no_pipeline(monkeypatch):
    from chapter_analyzer.taggers import spacy_tagger

    def missing() -> Any:
        raise ImportError("spaCy is required")

    monkeypatch.setattr(spacy_tagger, "_ensure_spacy", missing)
    with pytest.raises(ImportError):
        SpacyEntityTagger(model="en_core_web_sm")
