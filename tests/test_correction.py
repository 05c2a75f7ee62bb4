from __future__ import annotations

import pytest

from chapter_analyzer.config import AnalyzerConfig, OpenAISettings
from chapter_analyzer.correction import (
    CallableCorrector,
    CorrectionPayload,
    OpenAICorrector,
    TextCorrector,
    apply_corrections,
    apply_fallback_rules,
    build_corrector_from_config,
    correct_text,
)
from chapter_analyzer.dialogue import segment_dialogue
from chapter_analyzer.errors import ExternalCapabilityFailure
from chapter_analyzer.llm import openai_client as oa_client
from chapter_analyzer.llm.openai_client import CompletionResult
from chapter_analyzer.models import Correction, CorrectionKind, Span, TokenUsage
from tests.utils import StaticCorrector


def _item(original: str, corrected: str, kind: str, **extra) -> dict:
    return {"original": original, "corrected": corrected, "type": kind, **extra}


def _response(*items: dict) -> dict:
    return {"correctedText": "ignored", "corrections": list(items)}


def test_fallback_fixes_known_typo():
    """Without a corrector the rule table fixes whole-word typos."""
    outcome = correct_text("I teh went home", [])

    assert outcome.corrected_text == "I the went home"
    assert outcome.source == "rules"
    assert outcome.diagnostics == []
    assert len(outcome.corrections) == 1
    correction = outcome.corrections[0]
    assert (correction.original, correction.corrected) == ("teh", "the")
    assert correction.kind is CorrectionKind.TYPO
    assert correction.span == Span(2, 5)
    assert correction.confidence == pytest.approx(0.75)


def test_fallback_preserves_case_and_whole_words():
    corrections = apply_fallback_rules("Teh road to Tehran was TEH longest.")

    assert [(c.original, c.corrected) for c in corrections] == [("Teh", "The"), ("TEH", "THE")]


def test_fallback_inside_dialogue_is_reported_as_spelling():
    text = '"I saw teh dog," said Ana.'
    corrections = apply_fallback_rules(text, segment_dialogue(text))

    assert [c.kind for c in corrections] == [CorrectionKind.SPELLING]


def test_llm_corrections_merge_with_rules_for_uncovered_spans():
    text = "I recieve teh letter."
    corrector = StaticCorrector(
        _response(_item("recieve", "receive", "spelling", position={"start": 2, "end": 9}))
    )
    outcome = correct_text(text, [], corrector)

    assert outcome.source == "llm"
    assert outcome.corrected_text == "I receive the letter."
    assert [(c.original, c.source) for c in outcome.corrections] == [
        ("recieve", "llm"),
        ("teh", "rules"),
    ]
    assert corrector.calls[0][0] == text


def test_misreported_position_is_relocated():
    corrector = StaticCorrector(
        _response(_item("teh", "the", "typo", position={"start": 0, "end": 3}))
    )
    outcome = correct_text("I teh went home", [], corrector)

    assert outcome.corrections[0].span == Span(2, 5)
    assert outcome.corrected_text == "I the went home"


def test_unusable_suggestions_are_rejected():
    corrector = StaticCorrector(
        _response(
            _item("went", "goes", "style"),
            _item("missing", "present", "typo"),
            _item("went home", "went back home", "grammar"),
            _item("went", "walked", "consistency"),
        )
    )
    outcome = correct_text("I went home", [], corrector)

    assert [c.corrected for c in outcome.corrections] == ["went back home"]
    assert any("Rejected 3" in note for note in outcome.diagnostics)


def test_confidence_is_clamped_and_defaulted():
    corrector = StaticCorrector(
        _response(
            _item("teh", "the", "typo", confidence=1.7),
            _item("adn", "and", "typo"),
        )
    )
    outcome = correct_text("teh cat adn dog", [], corrector, AnalyzerConfig(default_ai_confidence=0.85))

    assert [c.confidence for c in outcome.corrections] == [1.0, pytest.approx(0.85)]


def test_grammar_inside_dialogue_is_rejected(caplog):
    text = '"We was late," she said. He walk home.'
    dialogue = segment_dialogue(text)
    corrector = StaticCorrector(
        _response(
            _item("We was", "We were", "grammar", position={"start": 1, "end": 7}),
            _item("walk", "walked", "grammar"),
        )
    )
    outcome = correct_text(text, dialogue, corrector)

    assert outcome.corrected_text == '"We was late," she said. He walked home.'
    assert [c.original for c in outcome.corrections] == ["walk"]
    assert "inside dialogue" in caplog.text


def test_typo_inside_dialogue_becomes_spelling():
    text = '"I recieve it," she said.'
    corrector = StaticCorrector(_response(_item("recieve", "receive", "typo")))
    outcome = correct_text(text, segment_dialogue(text), corrector)

    assert [c.kind for c in outcome.corrections] == [CorrectionKind.SPELLING]


def test_malformed_response_falls_back_to_rules():
    outcome = correct_text("I teh went home", [], StaticCorrector("Sorry, I cannot help."))

    assert outcome.source == "rules"
    assert outcome.corrected_text == "I the went home"
    assert any("Rule-based corrections used" in note for note in outcome.diagnostics)


def test_failing_corrector_falls_back_to_rules():
    class BrokenCorrector(TextCorrector):
        def correct(self, text, dialogue_hints):
            raise ExternalCapabilityFailure("service unavailable")

    outcome = correct_text("I teh went home", [], BrokenCorrector())

    assert outcome.source == "rules"
    assert "service unavailable" in outcome.diagnostics[0]


def test_callable_corrector_wraps_plain_results():
    corrector = CallableCorrector(lambda text, hints: _response())

    payload = corrector.correct("text", [])

    assert isinstance(payload, CorrectionPayload)
    assert payload.raw["corrections"] == []


def test_apply_corrections_skips_overlaps():
    text = "abc def"
    corrections = [
        Correction("abc", "ABC", CorrectionKind.TYPO, Span(0, 3), 0.9),
        Correction("bc", "BC", CorrectionKind.TYPO, Span(1, 3), 0.9),
        Correction("def", "DEF", CorrectionKind.TYPO, Span(4, 7), 0.9),
    ]

    assert apply_corrections(text, corrections) == "ABC DEF"


def test_openai_corrector_sends_dialogue_ranges():
    captured: dict[str, object] = {}

    class DummyClient:
        def complete(self, *, system_prompt: str, user_prompt: str, metadata):
            captured["system"] = system_prompt
            captured["user"] = user_prompt
            captured["purpose"] = metadata.purpose
            return CompletionResult(text="{}", usage=TokenUsage(10, 5, 15))

    text = '"Hello," said Ana. Ana walked home.'
    payload = OpenAICorrector(DummyClient()).correct(text, segment_dialogue(text))

    assert payload.raw == "{}"
    assert payload.usage == TokenUsage(10, 5, 15)
    assert "[0, 17)" in captured["user"]
    assert text in captured["user"]
    assert "fix ONLY spelling errors" in captured["system"]
    assert captured["purpose"] == "correction"


def test_build_corrector_from_config(monkeypatch):
    assert build_corrector_from_config(AnalyzerConfig()) is None

    monkeypatch.setattr(oa_client, "OpenAI", lambda **_: object())
    enabled = AnalyzerConfig(openai=OpenAISettings(enabled=True, api_key="token"))
    assert isinstance(build_corrector_from_config(enabled), OpenAICorrector)

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    keyless = AnalyzerConfig(openai=OpenAISettings(enabled=True))
    with pytest.raises(ExternalCapabilityFailure):
        build_corrector_from_config(keyless)
