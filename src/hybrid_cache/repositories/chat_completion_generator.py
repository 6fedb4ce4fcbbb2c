"""OpenAI-compatible chat completion client.

Used by the cache warm-up job to produce answers for inputs that miss the
cache. Each call picks a model at random from the configured list and
backs off exponentially when the API answers 429 Too Many Requests.
"""

import asyncio
import logging
import random

import httpx

from hybrid_cache.config import settings
from hybrid_cache.exceptions import ProviderError

logger = logging.getLogger(__name__)


class ChatCompletionGenerator:
    """AnswerGenerator backed by a ``/chat/completions`` endpoint."""

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        models: list[str] | None = None,
        max_retries: int = 5,
        backoff_seconds: float = 1.0,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url or settings.generation_api_url
        self._api_key = api_key or settings.generation_api_key
        self._models = models if models is not None else settings.generation_model_list
        if not self._models:
            raise ValueError("At least one generation model is required")
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._timeout = timeout
        self._client = client

    @classmethod
    def create(cls, models: list[str] | None = None) -> "ChatCompletionGenerator":
        """Factory method to create ChatCompletionGenerator from settings."""
        return cls(models=models)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def generate(self, prompt: str) -> str:
        """Generate an answer for a single user prompt.

        Raises:
            ProviderError: On non-429 HTTP errors, malformed responses, or
                when the retry budget is spent on rate limiting
        """
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        for attempt in range(self._max_retries):
            payload = {
                "model": random.choice(self._models),
                "messages": [{"role": "user", "content": prompt}],
            }
            try:
                response = await self.client.post(self._api_url, json=payload, headers=headers)
                if response.status_code == 429:
                    wait = self._backoff_seconds * 2**attempt
                    logger.warning(
                        "Rate limit hit, waiting %.1fs before retrying (attempt %d/%d)",
                        wait,
                        attempt + 1,
                        self._max_retries,
                    )
                    await asyncio.sleep(wait)
                    continue
                response.raise_for_status()
                data = response.json()
                return data["choices"][0]["message"]["content"].strip()
            except httpx.HTTPError as e:
                raise ProviderError(f"Chat completion request failed: {e}") from e
            except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
                raise ProviderError(f"Unexpected chat completion response: {e}") from e

        raise ProviderError("Max retries reached due to rate limiting")

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
