"""Cache match domain entities."""

from dataclasses import dataclass
from enum import Enum

from .cache_entry import CacheEntryEntity


class MatchClass(str, Enum):
    """Which strategy produced a cache hit."""

    EXACT = "exact"
    LEXICAL = "lexical"
    SEMANTIC = "semantic"


@dataclass(frozen=True)
class CacheMatchEntity:
    """Domain entity for a cache lookup hit.

    Attributes:
        key: The matched key (normalized request text)
        value: The cached answer
        score: 1.0 for exact hits, edit-distance similarity for lexical
            hits, cosine similarity for semantic hits
        match_class: Strategy that produced the hit
    """

    key: str
    value: str
    score: float
    match_class: MatchClass


@dataclass(frozen=True)
class PageScore:
    """Best candidate from one scored page of the semantic scan.

    ``best_match`` is None when no candidate strictly beat the bound, in
    which case ``best_score`` is the unchanged bound.
    """

    best_match: CacheEntryEntity | None
    best_score: float
