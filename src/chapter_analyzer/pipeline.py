from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Iterable, List, Sequence, TypeVar, Union

from .config import AnalyzerConfig
from .consistency import check_consistency
from .correction import (
    CorrectionOutcome,
    TextCorrector,
    build_corrector_from_config,
    correct_text,
    fallback_outcome,
)
from .dialogue import segment_dialogue
from .entities import extract_names
from .errors import ExternalCapabilityFailure, InputError, RegistryUnavailableError
from .models import (
    AnalysisResult,
    ConsistencyFlag,
    DialogueSpan,
    NamedEntity,
    TrackedName,
)
from .phrasing import PhrasingReviewer, build_reviewer_from_config, review_phrasing
from .registry import InMemoryNameRegistry, NameRegistry, plan_registry_updates
from .repetition import detect_repetitions
from .summary import (
    FALLBACK_FEEDBACK,
    SummaryWriter,
    build_highlights,
    build_summary,
    build_summary_writer_from_config,
    request_feedback,
)
from .taggers import EntityTagger, HeuristicEntityTagger, build_tagger_from_config
from .textutils import compute_statistics
from .tokenization import tokenize_words

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Correction, phrasing review and literary feedback.
EXTERNAL_CALLS = 3

RegistryLike = Union[NameRegistry, Sequence[TrackedName], None]


def analyze_chapter(
    text: str,
    registry: RegistryLike = None,
    *,
    chapter_number: int = 1,
    config: AnalyzerConfig | None = None,
    corrector: TextCorrector | None = None,
    tagger: EntityTagger | None = None,
    reviewer: PhrasingReviewer | None = None,
    summary_writer: SummaryWriter | None = None,
    apply_registry_updates: bool = True,
) -> AnalysisResult:
    """
    Analyze one chapter and reconcile its names with the author's registry.

    Repetition and entity extraction run on a detector pool once dialogue has
    been segmented. Correction, phrasing review and literary feedback run on
    their own threads and share one deadline of ``config.correction_timeout``
    seconds; correction falls back to the rule table when it fails or runs
    late. A failing detector or registry leaves its collection empty and adds a
    diagnostic note instead of aborting the run.
    """
    if not isinstance(text, str):
        raise InputError(f"Chapter text must be a string, got {type(text).__name__}.")
    if chapter_number < 1:
        raise InputError(f"Chapter number must be positive, got {chapter_number}.")
    cfg = config or AnalyzerConfig()
    store = _as_registry(registry)

    if not text.strip():
        return AnalysisResult(
            corrected_text=text,
            statistics=compute_statistics(text, [], []),
        )

    diagnostics: List[str] = []
    if corrector is None:
        corrector = _optional_capability(build_corrector_from_config, cfg, diagnostics)
    if reviewer is None:
        reviewer = _optional_capability(build_reviewer_from_config, cfg, diagnostics)
    if summary_writer is None:
        summary_writer = _optional_capability(
            build_summary_writer_from_config, cfg, diagnostics
        )
    active_tagger = tagger or _build_tagger(cfg, diagnostics)

    tokens = tokenize_words(text)
    dialogue = segment_dialogue(text)
    logger.info(
        "Analyzing chapter %s: %s tokens, %s dialogue sections",
        chapter_number,
        len(tokens),
        len(dialogue),
    )

    detectors = ThreadPoolExecutor(
        max_workers=cfg.max_workers, thread_name_prefix="chapter-analyzer"
    )
    # External calls never queue behind detectors.
    external = ThreadPoolExecutor(
        max_workers=EXTERNAL_CALLS, thread_name_prefix="chapter-analyzer-external"
    )
    try:
        deadline = time.monotonic() + cfg.correction_timeout
        correction_future = external.submit(correct_text, text, dialogue, corrector, cfg)
        phrasing_future = external.submit(
            review_phrasing, text, reviewer, cfg.max_awkward_phrases
        )
        feedback_future = external.submit(request_feedback, text, summary_writer)
        repetition_future = detectors.submit(detect_repetitions, tokens, cfg)
        names_future = detectors.submit(extract_names, text, active_tagger)

        repetitions = _collect(repetition_future, "repetition detection", [], diagnostics)
        names: List[NamedEntity] = _collect(names_future, "name extraction", [], diagnostics)
        outcome = _await_correction(
            correction_future, text, dialogue, cfg, timeout=_remaining(deadline)
        )
        awkward = _collect(
            phrasing_future,
            "phrasing review",
            [],
            diagnostics,
            timeout=_remaining(deadline),
        )
        feedback, feedback_source, feedback_usage = _collect(
            feedback_future,
            "literary feedback",
            (FALLBACK_FEEDBACK, "fallback", None),
            diagnostics,
            timeout=_remaining(deadline),
        )
    finally:
        # Never block on a stuck external call.
        detectors.shutdown(wait=False, cancel_futures=True)
        external.shutdown(wait=False, cancel_futures=True)
    diagnostics.extend(outcome.diagnostics)

    consistency: List[ConsistencyFlag] = []
    updates: List[TrackedName] = []
    if store is not None:
        consistency, updates = _reconcile_registry(
            store, names, chapter_number, cfg, apply_registry_updates, diagnostics
        )

    result = AnalysisResult(
        corrected_text=outcome.corrected_text,
        corrections=outcome.corrections,
        repetitions=repetitions,
        dialogue=dialogue,
        names=names,
        consistency=consistency,
        statistics=compute_statistics(text, tokens, dialogue),
        awkward_phrasing=awkward,
        highlights=build_highlights(text, repetitions, awkward, consistency),
        summary=build_summary(
            outcome.corrections, feedback, feedback_source, feedback_usage
        ),
        registry_updates=updates,
        correction_source=outcome.source,
        diagnostics=diagnostics,
        token_usage=outcome.usage,
    )
    logger.info(
        "Chapter %s analyzed: %s corrections (%s), %s repetitions, %s names, %s flags",
        chapter_number,
        len(result.corrections),
        result.correction_source,
        len(result.repetitions),
        len(result.names),
        len(result.consistency),
    )
    return result


def _as_registry(registry: RegistryLike) -> NameRegistry | None:
    if registry is None or isinstance(registry, NameRegistry):
        return registry
    if isinstance(registry, (str, bytes)):
        raise InputError("Registry must be a NameRegistry or a sequence of TrackedName.")
    names = list(registry)
    if not all(isinstance(name, TrackedName) for name in names):
        raise InputError("Registry must be a NameRegistry or a sequence of TrackedName.")
    return InMemoryNameRegistry(names)


def _optional_capability(factory: Any, config: AnalyzerConfig, diagnostics: List[str]) -> Any:
    try:
        return factory(config)
    except (ExternalCapabilityFailure, ValueError) as exc:
        logger.warning("External capability disabled: %s", exc)
        diagnostics.append(f"External capability disabled: {exc}")
        return None


def _build_tagger(config: AnalyzerConfig, diagnostics: List[str]) -> EntityTagger:
    try:
        return build_tagger_from_config(config)
    except (ImportError, OSError) as exc:
        logger.warning("Tagger %r unavailable, using heuristic tagger: %s", config.tagger_name, exc)
        diagnostics.append(f"Tagger '{config.tagger_name}' unavailable: {exc}")
        return HeuristicEntityTagger()


def _collect(
    future: "Future[T]",
    label: str,
    default: T,
    diagnostics: List[str],
    timeout: float | None = None,
) -> T:
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning("%s did not finish before the deadline", label)
        diagnostics.append(f"{label.capitalize()} timed out.")
    except Exception as exc:
        logger.exception("%s failed", label)
        diagnostics.append(f"{label.capitalize()} failed: {exc}")
    return default


def _await_correction(
    future: "Future[CorrectionOutcome]",
    text: str,
    dialogue: Sequence[DialogueSpan],
    config: AnalyzerConfig,
    timeout: float | None = None,
) -> CorrectionOutcome:
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        reason = f"correction timed out after {config.correction_timeout}s"
    except Exception as exc:
        logger.exception("Correction failed")
        reason = f"correction failed: {exc}"
    return fallback_outcome(text, dialogue, config, reason=reason)


def _reconcile_registry(
    store: NameRegistry,
    names: Iterable[NamedEntity],
    chapter_number: int,
    config: AnalyzerConfig,
    apply_updates: bool,
    diagnostics: List[str],
) -> tuple[List[ConsistencyFlag], List[TrackedName]]:
    names = list(names)
    with store.lock:
        try:
            tracked = store.load()
            flags = check_consistency(names, tracked, config)
            plan = plan_registry_updates(
                names,
                tracked,
                chapter_number,
                excluded={flag.candidate_name for flag in flags},
            )
            if apply_updates and plan.changed:
                store.save(plan.merged)
        except RegistryUnavailableError as exc:
            logger.warning("Name registry unavailable: %s", exc)
            diagnostics.append(f"Name registry unavailable: {exc}")
            return [], []
        except Exception as exc:
            logger.exception("Name registry reconciliation failed")
            diagnostics.append(f"Name registry reconciliation failed: {exc}")
            return [], []
    return flags, plan.new_names


def _remaining(deadline: float) -> float:
    return max(0.0, deadline - time.monotonic())
