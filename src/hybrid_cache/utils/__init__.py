"""Utility modules for the hybrid cache."""

from .text import best_lexical_match, fingerprint, levenshtein, lexical_similarity, normalize

__all__ = [
    "best_lexical_match",
    "fingerprint",
    "levenshtein",
    "lexical_similarity",
    "normalize",
]
