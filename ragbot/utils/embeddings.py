"""
OpenAI embeddings for questions and reference passages

Vectors are cached in-process by (model, text) so a repeated question or an
already seeded passage costs no API call.
"""

from __future__ import annotations

import asyncio
import hashlib
import random
from collections import OrderedDict
from typing import Dict, List, Optional

from openai import OpenAI
from openai import APIError, RateLimitError, APITimeoutError, APIConnectionError

from ragbot.config import settings
from ragbot.utils.logging import get_logger

logger = get_logger(__name__, category="retrieval")

EMBEDDING_DIM = 1536


class EmbeddingCache:
    """Bounded mapping of cache key to vector, least recently used evicted first."""

    def __init__(self, max_entries: int = 5000) -> None:
        self.max_entries = max_entries
        self._vectors: "OrderedDict[str, List[float]]" = OrderedDict()

    @staticmethod
    def key(model: str, text: str) -> str:
        return hashlib.sha256(f"{model}\n{text}".encode("utf-8")).hexdigest()

    def lookup(self, model: str, text: str) -> Optional[List[float]]:
        k = self.key(model, text)
        if k not in self._vectors:
            return None
        self._vectors.move_to_end(k)
        return self._vectors[k]

    def store(self, model: str, text: str, vector: List[float]) -> None:
        k = self.key(model, text)
        self._vectors[k] = vector
        self._vectors.move_to_end(k)
        while len(self._vectors) > self.max_entries:
            self._vectors.popitem(last=False)


_client: Optional[OpenAI] = None
_cache = EmbeddingCache()


def _get_client() -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(api_key=settings.openai_api_key)
    return _client


async def _request_embeddings(inputs: List[str], model: str) -> List[List[float]]:
    """One embeddings call with retries on transient OpenAI errors."""
    delay_seconds = 0.5
    max_attempts = settings.openai_retry_times + 1
    for attempt in range(max_attempts):
        try:
            response = await asyncio.to_thread(
                _get_client().embeddings.create, model=model, input=inputs
            )
        except (RateLimitError, APITimeoutError, APIConnectionError, APIError) as exc:
            if attempt == max_attempts - 1:
                raise
            logger.warning(
                f"Embedding request failed (attempt {attempt + 1}/{max_attempts}): {exc}"
            )
            await asyncio.sleep(delay_seconds + random.random() * 0.25)
            delay_seconds *= 2
            continue

        vectors = [item.embedding for item in response.data]
        bad = [len(v) for v in vectors if len(v) != EMBEDDING_DIM]
        if bad:
            raise ValueError(f"Unexpected embedding dimension: {bad[0]} != {EMBEDDING_DIM}")

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug({"embedding_tokens": getattr(usage, "total_tokens", None)})
        return vectors
    return []


async def embed_text(text: str, *, model: Optional[str] = None) -> List[float]:
    """Embed a single piece of text.

    Returns an empty list when the service answered without any vector.
    """
    model = model or settings.embedding_model
    cached = _cache.lookup(model, text)
    if cached is not None:
        return cached

    vectors = await _request_embeddings([text], model)
    if not vectors:
        return []
    _cache.store(model, text, vectors[0])
    return vectors[0]


async def embed_texts(
    texts: List[str], *, model: Optional[str] = None, batch_size: int = 128
) -> List[List[float]]:
    """Embed many texts, one vector per input in input order.

    Raises:
        ValueError: the service returned a different number of vectors than
            texts sent in a batch
    """
    model = model or settings.embedding_model
    found: Dict[int, List[float]] = {}
    pending: List[int] = []
    for index, text in enumerate(texts):
        cached = _cache.lookup(model, text)
        if cached is None:
            pending.append(index)
        else:
            found[index] = cached

    for start in range(0, len(pending), batch_size):
        batch = pending[start : start + batch_size]
        vectors = await _request_embeddings([texts[i] for i in batch], model)
        if len(vectors) != len(batch):
            raise ValueError(
                f"Embedding service returned {len(vectors)} vectors for {len(batch)} texts"
            )
        for index, vector in zip(batch, vectors):
            _cache.store(model, texts[index], vector)
            found[index] = vector

    return [found[i] for i in range(len(texts))]
