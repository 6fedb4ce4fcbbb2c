"""Batch cache warm-up.

Runs a list of inputs through the cache: hits are left alone, misses are
answered by the generator and stored. Used to pre-populate the cache before
traffic arrives.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from hybrid_cache.exceptions import ProviderError
from hybrid_cache.protocols import AnswerGenerator

from .cache_service import CacheService

logger = logging.getLogger(__name__)


def read_inputs(path: str | Path) -> list[str]:
    """Read one input per line, skipping blank lines."""
    text = Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


@dataclass
class WarmupReport:
    """Per-input outcome of a warm-up run."""

    hits: list[str] = field(default_factory=list)
    stored: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> list[str]:
        return self.hits + self.stored

    def to_dict(self) -> dict[str, int]:
        return {
            "hits": len(self.hits),
            "stored": len(self.stored),
            "failed": len(self.failed),
        }


class WarmupService:
    """Populate the cache for a batch of inputs with bounded concurrency."""

    def __init__(
        self,
        cache_service: CacheService,
        generator: AnswerGenerator,
        concurrency: int = 5,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self._cache = cache_service
        self._generator = generator
        self._concurrency = concurrency

    async def run(self, inputs: list[str]) -> WarmupReport:
        """Process every input; failures are recorded, never raised.

        Args:
            inputs: Request texts to warm

        Returns:
            WarmupReport listing hits, newly stored inputs and failures
        """
        report = WarmupReport()
        semaphore = asyncio.Semaphore(self._concurrency)

        async def process(text: str) -> None:
            async with semaphore:
                await self._warm_one(text, report)

        await asyncio.gather(*(process(text) for text in inputs))
        logger.info(
            "Warm-up finished: %d hits, %d stored, %d failed",
            len(report.hits),
            len(report.stored),
            len(report.failed),
        )
        return report

    async def _warm_one(self, text: str, report: WarmupReport) -> None:
        if await self._cache.get_cached_result(text) is not None:
            report.hits.append(text)
            logger.debug("Already cached: %r", text)
            return

        try:
            answer = await self._generator.generate(text)
        except ProviderError as e:
            report.failed[text] = str(e)
            logger.warning("Generation failed for %r: %s", text, e)
            return

        if not await self._cache.set_cache(text, answer):
            report.failed[text] = "answer was not stored"
            logger.warning("Answer for %r was not stored", text)
            return
        report.stored.append(text)
        logger.debug("Stored answer for %r", text)
