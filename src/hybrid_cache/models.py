from dataclasses import dataclass

from hybrid_cache.entities import MatchClass


@dataclass
class PerformanceMetrics:
    """Track lookup and write outcomes for one cache service."""

    total_lookups: int = 0
    exact_hits: int = 0
    lexical_hits: int = 0
    semantic_hits: int = 0
    misses: int = 0
    provider_errors: int = 0
    infrastructure_errors: int = 0
    total_lookup_time_ms: float = 0.0
    writes: int = 0
    skipped_writes: int = 0

    @property
    def cache_hits(self) -> int:
        return self.exact_hits + self.lexical_hits + self.semantic_hits

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        if self.total_lookups == 0:
            return 0.0
        return self.cache_hits / self.total_lookups

    @property
    def avg_lookup_time_ms(self) -> float:
        """Calculate average lookup time."""
        if self.total_lookups == 0:
            return 0.0
        return self.total_lookup_time_ms / self.total_lookups

    def record_hit(self, match_class: MatchClass, lookup_time_ms: float) -> None:
        """Record a cache hit of the given class."""
        self.total_lookups += 1
        self.total_lookup_time_ms += lookup_time_ms
        if match_class is MatchClass.EXACT:
            self.exact_hits += 1
        elif match_class is MatchClass.LEXICAL:
            self.lexical_hits += 1
        else:
            self.semantic_hits += 1

    def record_miss(self, lookup_time_ms: float) -> None:
        """Record a cache miss."""
        self.total_lookups += 1
        self.misses += 1
        self.total_lookup_time_ms += lookup_time_ms

    def record_provider_error(self) -> None:
        self.provider_errors += 1

    def record_infrastructure_error(self) -> None:
        self.infrastructure_errors += 1

    def record_write(self, persisted: bool) -> None:
        """Record a set_cache call and whether the durable tier kept it."""
        if persisted:
            self.writes += 1
        else:
            self.skipped_writes += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "total_lookups": self.total_lookups,
            "cache_hits": self.cache_hits,
            "exact_hits": self.exact_hits,
            "lexical_hits": self.lexical_hits,
            "semantic_hits": self.semantic_hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "avg_lookup_time_ms": self.avg_lookup_time_ms,
            "provider_errors": self.provider_errors,
            "infrastructure_errors": self.infrastructure_errors,
            "writes": self.writes,
            "skipped_writes": self.skipped_writes,
        }
