"""Embedding provider adapter.

Providers and SDK versions expose "embed some text" under different names and
shapes: single-text only, batch only, or both. The adapter probes the provider
once, at construction, picks one strategy, and from then on offers exactly two
calls to the rest of the system:

    embed_one(text)   -> vector of length D
    embed_many(texts) -> vectors of length D, same length and order as texts

Every provider error is reported as ProviderUnavailable; every vector of the
wrong length as DimensionMismatch. Vectors are never truncated or padded.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable

from shared.models.errors import DimensionMismatch, ProviderUnavailable

# Known method names, newest SDK generation first.
SINGLE_METHOD_NAMES = ("embed_one", "embed_single", "embed", "embed_query")
BATCH_METHOD_NAMES = ("embed_many", "embed_batch", "embed_documents")

SHAPE_BOTH = "single+batch"
SHAPE_BATCH_ONLY = "batch-only"
SHAPE_SINGLE_ONLY = "single-only"
SHAPE_NONE = "none"


def _find_method(provider: Any, names: tuple[str, ...]) -> Callable | None:
    for name in names:
        method = getattr(provider, name, None)
        if callable(method):
            return method
    return None


async def _maybe_await(value: Any) -> Any:
    # SDKs are a mix of sync and async
    if inspect.isawaitable(value):
        return await value
    return value


class EmbeddingAdapter:
    """Normalises an embedding provider onto embed_one / embed_many.

    Args:
        provider: Any object exposing at least one known single or batch method.
        dimension (int): Required vector length D.
        logger: Logger used for debug output.
        batch_size (int): Max texts per batch call. Larger inputs are split and reassembled.
        fanout_concurrency (int): Max parallel single calls when the provider has no batch method.
    """

    def __init__(self, provider: Any, dimension: int, logger, batch_size: int = 100, fanout_concurrency: int = 5):
        if dimension <= 0:
            raise ValueError("Embedding dimension must be positive.")
        self.provider = provider
        self.dimension = dimension
        self.logging = logger
        self.batch_size = max(1, int(batch_size))
        self.fanout_concurrency = max(1, int(fanout_concurrency))

        self._single: Callable[[str], Awaitable[list[float]]] | None = _find_method(provider, SINGLE_METHOD_NAMES)
        self._batch: Callable[[list[str]], Awaitable[list[list[float]]]] | None = _find_method(provider, BATCH_METHOD_NAMES)
        self.shape = self._resolve_shape()
        self.logging.debug("Embedding adapter for %s resolved call shape '%s'.", type(provider).__name__, self.shape)

    def _resolve_shape(self) -> str:
        if self._single and self._batch:
            return SHAPE_BOTH
        if self._batch:
            return SHAPE_BATCH_ONLY
        if self._single:
            return SHAPE_SINGLE_ONLY
        return SHAPE_NONE

    ##########################################
    ############### CONTRACT #################
    ##########################################

    async def embed_one(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            ProviderUnavailable: If no call shape can serve the request or the provider fails.
            DimensionMismatch: If the vector length differs from the configured dimension.
        """
        if self.shape in (SHAPE_BOTH, SHAPE_SINGLE_ONLY):
            vector = await self._call_single(text)
        elif self.shape == SHAPE_BATCH_ONLY:
            vectors = await self._call_batch([text])
            vector = vectors[0]
        else:
            raise ProviderUnavailable(f"Provider {type(self.provider).__name__} exposes no known embedding method.")
        return self._check_dimension(vector, "embed_one")

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts. result[i] is the vector of texts[i].

        Raises:
            ProviderUnavailable: If no call shape can serve the request or the provider fails.
            DimensionMismatch: If any vector length differs from the configured dimension.
        """
        texts = list(texts)
        if not texts:
            return []
        if self.shape in (SHAPE_BOTH, SHAPE_BATCH_ONLY):
            vectors: list[list[float]] = []
            for start in range(0, len(texts), self.batch_size):
                vectors.extend(await self._call_batch(texts[start:start + self.batch_size]))
        elif self.shape == SHAPE_SINGLE_ONLY:
            vectors = await self._fan_out(texts)
        else:
            raise ProviderUnavailable(f"Provider {type(self.provider).__name__} exposes no known embedding method.")
        return [self._check_dimension(vector, f"embed_many[{i}]") for i, vector in enumerate(vectors)]

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _call_single(self, text: str) -> list[float]:
        try:
            result = await _maybe_await(self._single(text))
        except Exception as exc:
            raise ProviderUnavailable(f"Single-text embedding call failed: {exc}") from exc
        # some SDKs return [[...]] even for one input
        if isinstance(result, list) and result and isinstance(result[0], list):
            result = result[0]
        if not isinstance(result, list):
            raise ProviderUnavailable(f"Single-text embedding call returned {type(result).__name__}, expected a vector.")
        return result

    async def _call_batch(self, texts: list[str]) -> list[list[float]]:
        try:
            result = await _maybe_await(self._batch(texts))
        except Exception as exc:
            raise ProviderUnavailable(f"Batch embedding call failed: {exc}") from exc
        if not isinstance(result, list) or len(result) != len(texts):
            returned = len(result) if isinstance(result, list) else type(result).__name__
            raise ProviderUnavailable(f"Batch embedding call returned {returned} vectors for {len(texts)} texts.")
        return result

    async def _fan_out(self, texts: list[str]) -> list[list[float]]:
        sem = asyncio.Semaphore(self.fanout_concurrency)

        async def _one(text: str) -> list[float]:
            async with sem:
                return await self._call_single(text)

        # gather preserves argument order
        return list(await asyncio.gather(*[_one(text) for text in texts]))

    def _check_dimension(self, vector: list[float], context: str) -> list[float]:
        if len(vector) != self.dimension:
            raise DimensionMismatch(expected=self.dimension, actual=len(vector), context=context)
        return [float(v) for v in vector]
