"""Embedding and fingerprint backfill for existing durable entries.

Entries written before embeddings (or fingerprints) were computed are
invisible to the semantic scan. This job walks them in key order, embeds
each batch with a single provider call and writes the derived fields back.
"""

import asyncio
import logging
from dataclasses import dataclass

from hybrid_cache.exceptions import CacheError
from hybrid_cache.protocols import DurableStore, EmbeddingProvider
from hybrid_cache.utils.text import fingerprint

logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    """Outcome of one backfill run."""

    updated: int = 0
    skipped: int = 0
    failed_batches: int = 0
    batches: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "updated": self.updated,
            "skipped": self.skipped,
            "failed_batches": self.failed_batches,
            "batches": self.batches,
        }


class BackfillService:
    """Fill in missing embeddings and fingerprints batch by batch.

    Example:
        ```python
        service = BackfillService(durable_store, embedding_provider, batch_size=500)
        report = await service.run()
        ```
    """

    def __init__(
        self,
        durable_store: DurableStore,
        embedding_provider: EmbeddingProvider,
        batch_size: int = 500,
        overwrite: bool = False,
        pause_seconds: float = 1.0,
    ) -> None:
        """Initialize the backfill job.

        Args:
            durable_store: Store whose entries are updated
            embedding_provider: Provider used for batch embedding
            batch_size: Entries per batch (one provider call each)
            overwrite: Recompute fields for every entry, not only incomplete ones
            pause_seconds: Delay between batches to stay under provider rate limits
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._durable = durable_store
        self._embeddings = embedding_provider
        self._batch_size = batch_size
        self._overwrite = overwrite
        self._pause_seconds = pause_seconds

    async def run(self) -> BackfillReport:
        """Process every pending entry.

        A batch that fails to embed or write is logged and counted; the run
        continues with the next batch. Reading the next batch failing ends
        the run.

        Returns:
            BackfillReport with counts
        """
        report = BackfillReport()
        after_key: str | None = None

        while True:
            try:
                batch = await self._durable.scan_for_backfill(
                    after_key, self._batch_size, overwrite=self._overwrite
                )
            except CacheError as e:
                logger.error("Backfill stopped, could not read next batch: %s", e)
                break
            if not batch:
                break

            report.batches += 1
            after_key = batch[-1].key
            await self._process_batch(batch, report)

            if len(batch) < self._batch_size:
                break
            if self._pause_seconds > 0:
                await asyncio.sleep(self._pause_seconds)

        logger.info(
            "Backfill finished: %d updated, %d skipped, %d of %d batches failed",
            report.updated,
            report.skipped,
            report.failed_batches,
            report.batches,
        )
        return report

    async def _process_batch(self, batch, report: BackfillReport) -> None:
        keys = [entry.key for entry in batch]
        try:
            embeddings = await self._embeddings.embed_batch(keys)
        except CacheError as e:
            report.failed_batches += 1
            logger.error("Failed to embed batch %d (%d entries): %s", report.batches, len(keys), e)
            return

        expected = self._embeddings.dimension
        try:
            for key, embedding in zip(keys, embeddings):
                if len(embedding) != expected:
                    report.skipped += 1
                    logger.warning(
                        "Embedding for %r has %d dimensions, expected %d; skipping",
                        key,
                        len(embedding),
                        expected,
                    )
                    continue
                if await self._durable.set_derived_fields(key, fingerprint(key), embedding):
                    report.updated += 1
                else:
                    report.skipped += 1
        except CacheError as e:
            report.failed_batches += 1
            logger.error("Failed to write batch %d: %s", report.batches, e)
            return

        logger.info("Backfilled batch %d (%d entries)", report.batches, len(keys))
