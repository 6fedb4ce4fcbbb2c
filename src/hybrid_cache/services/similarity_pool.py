"""Cosine scoring of semantic scan pages off the event loop.

``score_page`` is a pure function so it can run in a thread or a separate
process. ``SimilarityWorkerPool`` owns the executor and turns any failure
inside a page into "no improvement" so one bad page never aborts a lookup.
"""

import asyncio
import logging
from collections.abc import Sequence
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor

import numpy as np

from hybrid_cache.config import settings
from hybrid_cache.entities import CacheEntryEntity, PageScore

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity dot(a, b) / (|a| * |b|).

    Zero-magnitude vectors score 0.0.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denominator = np.linalg.norm(va) * np.linalg.norm(vb)
    if denominator == 0:
        return 0.0
    return float(np.dot(va, vb) / denominator)


def score_page(
    query_vector: Sequence[float],
    candidates: Sequence[CacheEntryEntity],
    current_best_score: float,
) -> PageScore:
    """Find the candidate whose cosine similarity strictly beats the bound.

    Args:
        query_vector: Embedding of the request
        candidates: One page of entries with embeddings
        current_best_score: Pruning bound (threshold or best score so far)

    Returns:
        PageScore with the best qualifying candidate, or no match and the
        unchanged bound

    Raises:
        ValueError: If candidate vectors are ragged or do not match the
            query dimension
    """
    if not candidates:
        return PageScore(best_match=None, best_score=current_best_score)

    query = np.asarray(query_vector, dtype=np.float64)
    matrix = np.asarray([c.embedding for c in candidates], dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
        raise ValueError(
            f"Candidate vectors of shape {matrix.shape} do not match query dimension {query.shape[0]}"
        )

    query_norm = np.linalg.norm(query)
    if query_norm == 0:
        return PageScore(best_match=None, best_score=current_best_score)

    norms = np.linalg.norm(matrix, axis=1)
    valid = norms > 0
    scores = np.full(len(candidates), -np.inf)
    scores[valid] = (matrix[valid] @ query) / (norms[valid] * query_norm)
    scores[np.isnan(scores)] = -np.inf

    best_index = int(np.argmax(scores))
    best_score = float(scores[best_index])
    if not np.isfinite(best_score) or best_score <= current_best_score:
        return PageScore(best_match=None, best_score=current_best_score)
    return PageScore(best_match=candidates[best_index], best_score=best_score)


class SimilarityWorkerPool:
    """Runs ``score_page`` on a concurrent.futures executor.

    Example:
        ```python
        pool = SimilarityWorkerPool.create(max_workers=4)
        result = await pool.score_page(query_vector, page, current_best_score=0.9)
        pool.close()
        ```
    """

    def __init__(self, executor: Executor | None = None, max_workers: int | None = None) -> None:
        """Initialize the worker pool.

        Args:
            executor: Executor to run scoring on. If None, a thread pool is created.
            max_workers: Worker count for the created thread pool.
        """
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers or settings.similarity_workers,
            thread_name_prefix="similarity",
        )

    @classmethod
    def create(
        cls,
        kind: str | None = None,
        max_workers: int | None = None,
    ) -> "SimilarityWorkerPool":
        """Factory method to create a thread- or process-backed pool.

        Args:
            kind: "thread" or "process". If None, uses settings.
            max_workers: Worker count. If None, uses settings.
        """
        kind = kind or settings.similarity_executor
        workers = max_workers or settings.similarity_workers
        if kind == "process":
            pool = cls(executor=ProcessPoolExecutor(max_workers=workers))
            pool._owns_executor = True
            return pool
        if kind == "thread":
            return cls(max_workers=workers)
        raise ValueError(f"Unknown executor kind: {kind!r}")

    async def score_page(
        self,
        query_vector: Sequence[float],
        candidates: Sequence[CacheEntryEntity],
        current_best_score: float,
    ) -> PageScore:
        """Score one page in the executor.

        Any exception raised while scoring is logged and reported as a page
        that contributes no improvement.
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self._executor,
                score_page,
                list(query_vector),
                list(candidates),
                current_best_score,
            )
        except Exception as e:
            logger.warning("Similarity scoring failed for a page of %d entries: %s", len(candidates), e)
            return PageScore(best_match=None, best_score=current_best_score)

    def close(self) -> None:
        """Shut down the executor if this pool created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
