"""Text normalization, fingerprinting and lexical similarity."""

import hashlib
from collections.abc import Iterable


def _require_str(value: object, name: str = "text") -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be str, got {type(value).__name__}")
    return value


def normalize(text: str) -> str:
    """Canonical form of a request: surrounding whitespace stripped, lowercased."""
    return _require_str(text).strip().lower()


def fingerprint(text: str) -> str:
    """SHA-256 hex digest of the normalized text.

    Two inputs that normalize to the same key always share a fingerprint.
    """
    return hashlib.sha256(normalize(text).encode("utf-8")).hexdigest()


def levenshtein(a: str, b: str) -> int:
    """Character-level edit distance between two strings."""
    _require_str(a, "a")
    _require_str(b, "b")
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def lexical_similarity(a: str, b: str) -> float:
    """Edit distance normalized to [0, 1]: 1 - distance / max length.

    Two empty strings are identical (1.0).
    """
    max_len = max(len(_require_str(a, "a")), len(_require_str(b, "b")))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / max_len


def best_lexical_match(
    query: str, candidates: Iterable[str], min_similarity: float
) -> tuple[str, float] | None:
    """Most similar candidate at or above ``min_similarity``.

    Ties keep the earlier candidate; an identical candidate ends the search.

    Returns:
        Tuple (candidate, similarity), or None
    """
    best: tuple[str, float] | None = None
    for candidate in candidates:
        score = lexical_similarity(query, candidate)
        if score >= min_similarity and (best is None or score > best[1]):
            best = (candidate, score)
            if score == 1.0:
                break
    return best
