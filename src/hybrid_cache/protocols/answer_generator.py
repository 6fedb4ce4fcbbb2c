"""Answer generator protocol.

The expensive generation step the cache exists to avoid. Only the warm-up
job calls it directly; online callers generate answers themselves and hand
them to ``CacheService.set_cache``.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class AnswerGenerator(Protocol):
    """Protocol for answer generation services."""

    async def generate(self, prompt: str) -> str:
        """Produce an answer for the prompt.

        Raises:
            ProviderError: If the provider call fails
        """
        ...

    async def close(self) -> None:
        """Release any underlying HTTP client."""
        ...
