from __future__ import annotations

from rapidfuzz.distance import Jaro, JaroWinkler

PREFIX_SCALE = 0.1


def jaro_similarity(first: str, second: str) -> float:
    """Jaro similarity of two strings in [0, 1]."""
    return Jaro.normalized_similarity(first, second)


def jaro_winkler_similarity(first: str, second: str) -> float:
    """
    Jaro-Winkler similarity in [0, 1].

    Shared prefixes of up to four characters earn a boost once the Jaro score
    exceeds 0.7.
    """
    return JaroWinkler.normalized_similarity(first, second, prefix_weight=PREFIX_SCALE)
