from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from .config import AnalyzerConfig
from .models import ConsistencyFlag, NamedEntity, Severity, TrackedName
from .similarity import jaro_winkler_similarity
from .textutils import normalize_name

logger = logging.getLogger(__name__)


def severity_for(similarity: float) -> Severity:
    if similarity >= 0.95:
        return Severity.HIGH
    if similarity >= 0.9:
        return Severity.MEDIUM
    return Severity.LOW


def check_consistency(
    names: Iterable[NamedEntity],
    tracked: Sequence[TrackedName],
    config: AnalyzerConfig | None = None,
) -> List[ConsistencyFlag]:
    """
    Flag chapter names that look like misspellings of names already tracked
    for the author.

    A pair is flagged when its similarity lies in ``[threshold, 1.0)``. Names
    that exactly match any tracked name or variant are taken as deliberate and
    never flagged, even if they also resemble a different tracked name.
    """
    if not tracked:
        return []
    cfg = config or AnalyzerConfig()

    flags: List[ConsistencyFlag] = []
    for entity in names:
        if any(entry.matches(entity.name) for entry in tracked):
            continue
        candidate = normalize_name(entity.name)
        candidate_flags: List[ConsistencyFlag] = []
        for entry in tracked:
            similarity = jaro_winkler_similarity(
                candidate, normalize_name(entry.canonical_name)
            )
            if not cfg.similarity_threshold <= similarity < 1.0:
                continue
            candidate_flags.append(
                ConsistencyFlag(
                    candidate_name=entity.name,
                    matched_tracked=entry.canonical_name,
                    similarity=round(similarity, 4),
                    occurrences=list(entity.occurrences),
                    severity=severity_for(similarity),
                )
            )
        candidate_flags.sort(key=lambda flag: -flag.similarity)
        flags.extend(candidate_flags)

    if flags:
        logger.info("Flagged %s possible name inconsistencies", len(flags))
    return flags
