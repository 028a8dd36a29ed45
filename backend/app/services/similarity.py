from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def string_similarity(first: str, second: str) -> float:
    """Levenshtein similarity in [0, 1] over case-folded, trimmed strings."""
    a = (first or "").lower().strip()
    b = (second or "").lower().strip()
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    distance = Levenshtein.distance(a, b)
    return 1.0 - distance / max(len(a), len(b))
