from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence

from ragbot.config import settings
from ragbot.reason.errors import EmbeddingError, NoRelevantContext, SearchError
from ragbot.reason.interfaces import EmbeddingTool, RetrievedPassage, VectorSearchTool
from ragbot.utils.logging import get_logger
from ragbot.utils.message_splitter import first_chars

logger = get_logger(__name__, category="retrieval")

LOG_PREVIEW_CHARS = 256


def build_retrieval_text(history: Sequence[str], current_text: str) -> str:
    """Prior user turns, oldest first, followed by the current message."""
    return "\n".join([*history, current_text])


def to_passages(rows: Sequence[Dict[str, Any]]) -> List[RetrievedPassage]:
    """Convert raw index rows into passages, keeping their order.

    Rows without a string ``text`` field in their payload, or without a
    numeric score, are dropped.
    """
    passages: List[RetrievedPassage] = []
    for row in rows:
        payload = row.get("payload") or {}
        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            logger.warning(f"Skipping search hit {row.get('id')} without text payload")
            continue
        try:
            score = float(row["score"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Skipping search hit {row.get('id')} without numeric score")
            continue
        passages.append(RetrievedPassage(score=score, text=text))
    return passages


def augment_prompt(
    system_prompt: str,
    passages: Sequence[RetrievedPassage],
    *,
    relevance_threshold: float,
    soft_char_limit: int,
) -> str:
    """
    Append relevant passages to the system prompt.

    Passages are taken in the order given. The budget is checked before each
    candidate, so the last accepted passage may push the prompt past
    ``soft_char_limit`` but nothing is appended after that.
    """
    prompt = system_prompt
    for passage in passages:
        if len(prompt) > soft_char_limit:
            break
        logger.debug(
            f"Received vector score={passage.score} and text="
            f"{first_chars(passage.text, LOG_PREVIEW_CHARS)}"
        )
        if passage.score > relevance_threshold:
            prompt = f"{prompt}\n{passage.text}"
    return prompt


class ContextRetriever:
    """Builds the augmented system prompt for one question."""

    def __init__(
        self,
        *,
        embed: EmbeddingTool,
        vector_store: VectorSearchTool,
        top_k: Optional[int] = None,
        relevance_threshold: Optional[float] = None,
        soft_char_limit: Optional[int] = None,
    ) -> None:
        self.embed = embed
        self.vector_store = vector_store
        self.top_k = top_k if top_k is not None else settings.rag_top_k
        self.relevance_threshold = (
            relevance_threshold
            if relevance_threshold is not None
            else settings.rag_relevance_threshold
        )
        self.soft_char_limit = (
            soft_char_limit if soft_char_limit is not None else settings.rag_soft_char_limit
        )

    async def _embed(self, text: str) -> List[float]:
        try:
            vector = await self.embed(text)
        except Exception as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc
        if not vector:
            raise EmbeddingError("Embedding service returned no vector for the question")
        return list(vector)

    async def _search(
        self, collection: str, vector: List[float], limit: int
    ) -> List[RetrievedPassage]:
        try:
            rows = await self.vector_store.search(collection, vector, limit)
        except Exception as exc:
            raise SearchError(f"Vector search failed: {exc}") from exc
        return to_passages(rows)

    async def retrieve(
        self,
        *,
        history: Sequence[str],
        current_text: str,
        system_prompt: str,
        collection_id: str,
        k: Optional[int] = None,
        relevance_threshold: Optional[float] = None,
        soft_char_limit: Optional[int] = None,
    ) -> str:
        """
        Embed the question, search the collection and build the prompt.

        Raises:
            EmbeddingError: embedding failed or came back empty
            SearchError: the index query failed
            NoRelevantContext: no passage cleared the threshold
        """
        limit = k if k is not None else self.top_k
        threshold = (
            relevance_threshold
            if relevance_threshold is not None
            else self.relevance_threshold
        )
        budget = soft_char_limit if soft_char_limit is not None else self.soft_char_limit

        question_text = build_retrieval_text(history, current_text)
        logger.debug(f"The question history is {question_text}")

        t0 = time.monotonic()
        vector = await self._embed(question_text)
        t_embed = time.monotonic()
        passages = await self._search(collection_id, vector, limit)
        t_search = time.monotonic()

        prompt = augment_prompt(
            system_prompt,
            passages,
            relevance_threshold=threshold,
            soft_char_limit=budget,
        )
        logger.debug(
            {
                "telemetry": "rag.retrieve",
                "embed_ms": int((t_embed - t0) * 1000),
                "search_ms": int((t_search - t_embed) * 1000),
                "hits": len(passages),
                "best_score": max((p.score for p in passages), default=None),
                "prompt_chars": len(prompt),
            }
        )

        if prompt == system_prompt:
            raise NoRelevantContext("No relevant context for question")
        return prompt
