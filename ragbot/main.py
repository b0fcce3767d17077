"""
ragbot - FastAPI Application

This service:
- Receives chat messages relayed from the Discord gateway
- Answers questions with context retrieved from the vector index
- Posts the answer back to the channel, split to fit Discord's size limit

RUNNING THE SERVER:
    uvicorn ragbot.main:app --port 8000
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException

from ragbot.config import settings
from ragbot.memory.chat_history import ChatHistoryStore
from ragbot.memory.conversation_state import ConversationState
from ragbot.memory.redis_store import RedisKeyValueStore
from ragbot.memory.vector_store import VectorStore
from ragbot.reason.completion import CompletionService
from ragbot.reason.errors import NoRelevantContext, PipelineError
from ragbot.reason.pipeline import ResponsePipeline
from ragbot.reason.retriever import ContextRetriever
from ragbot.schemas.messages import (
    InboundMessage,
    MessageReceived,
    RAGContextRequest,
    RAGContextResponse,
)
from ragbot.utils.discord_api import DiscordTransport
from ragbot.utils.embeddings import embed_text
from ragbot.utils.logging import get_logger

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = get_logger(__name__, category="system")
chat_logger = get_logger(f"{__name__}.chat", category="chat")

app = FastAPI(
    title="ragbot",
    description="Retrieval-augmented Discord assistant",
    version="0.1.0",
)

# Shared Redis connection for restart flags and chat history
kv_store = RedisKeyValueStore(settings.redis_url, key_prefix="ragbot:")
history_store = ChatHistoryStore(kv_store, max_turns=settings.chat_history_max_turns)
conversation_state = ConversationState(kv_store)
transport = DiscordTransport()

try:
    vector_store: Optional[VectorStore] = VectorStore()
    logger.info("Vector store initialized")
except Exception as exc:
    logger.warning("Vector store unavailable: %s", exc)
    vector_store = None

retriever: Optional[ContextRetriever] = None
if vector_store is not None:
    retriever = ContextRetriever(embed=embed_text, vector_store=vector_store)

try:
    completion_service: Optional[CompletionService] = CompletionService(
        history_store=history_store
    )
    logger.info("Completion service initialized")
except Exception as exc:
    logger.warning("Completion service unavailable: %s", exc)
    completion_service = None

pipeline: Optional[ResponsePipeline] = None
if retriever is not None and completion_service is not None:
    pipeline = ResponsePipeline(
        transport=transport,
        conversation_state=conversation_state,
        history=history_store,
        retriever=retriever,
        completion=completion_service,
    )


# ============================================================================
# ENDPOINTS
# ============================================================================


@app.post("/chat/message", response_model=MessageReceived)
async def receive_message(message: InboundMessage):
    """
    Handle one message relayed from the gateway.

    The request returns once the turn is over: the answer (or the fallback
    message) has already been posted to the channel by then.
    """
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Response pipeline unavailable")

    result = await pipeline.handle(message)
    chat_logger.debug(
        f"Turn in {message.channel_id} ended as {result.outcome.value} "
        f"with {len(result.chunks)} chunk(s)"
    )
    return MessageReceived(
        received=True,
        message_id=str(uuid.uuid4()),
        timestamp=datetime.now(),
        outcome=result.outcome.value,
        chunks=len(result.chunks),
    )


@app.post("/rag/context", response_model=RAGContextResponse)
async def rag_context(request: RAGContextRequest):
    """Show the system prompt a question would be answered with."""
    if retriever is None:
        raise HTTPException(status_code=503, detail="Retriever unavailable")

    try:
        prompt = await retriever.retrieve(
            history=[],
            current_text=request.question,
            system_prompt=settings.system_prompt,
            collection_id=request.collection or settings.collection_name,
            k=request.top_k,
        )
    except NoRelevantContext:
        return RAGContextResponse(
            relevant=False,
            system_prompt=settings.system_prompt,
            prompt_chars=len(settings.system_prompt),
        )
    except PipelineError as exc:
        logger.error(f"Context retrieval failed: {exc}")
        raise HTTPException(status_code=502, detail="Context retrieval failed") from exc

    return RAGContextResponse(relevant=True, system_prompt=prompt, prompt_chars=len(prompt))


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "ragbot",
        "redis_connected": kv_store.is_connected,
        "pipeline_ready": pipeline is not None,
    }


# ============================================================================
# STARTUP/SHUTDOWN
# ============================================================================


@app.on_event("startup")
async def startup_event():
    """Refuse to start without bot credentials, then connect Redis."""
    settings.require_bot_credentials()
    logger.info(f"ragbot starting on {settings.host}:{settings.port}")
    logger.info(
        "The system prompt is %d lines", len(settings.system_prompt.splitlines())
    )

    try:
        await kv_store.connect()
    except Exception as exc:
        logger.warning(f"Redis unavailable, restart flags will not persist: {exc}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("ragbot shutting down")

    try:
        await kv_store.close()
    except Exception as exc:
        logger.error(f"Error closing Redis connection: {exc}")

    await transport.close()
