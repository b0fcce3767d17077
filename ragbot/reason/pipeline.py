from __future__ import annotations

import asyncio
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ragbot.config import settings
from ragbot.memory.conversation_state import ConversationState
from ragbot.reason.errors import NoRelevantContext, PipelineError
from ragbot.reason.interfaces import ChatHistoryTool, ChatTransport, CompletionTool
from ragbot.reason.retriever import ContextRetriever
from ragbot.schemas.messages import InboundMessage
from ragbot.utils.discord_api import TransportError
from ragbot.utils.logging import get_logger
from ragbot.utils.message_splitter import split_message

logger = get_logger(__name__, category="chat")


class PipelineOutcome(str, Enum):
    IGNORED = "ignored"
    RESTARTED = "restarted"
    ANSWERED = "answered"
    FAILED = "failed"


@dataclass
class PipelineResult:
    outcome: PipelineOutcome
    chunks: List[str] = field(default_factory=list)


class ResponsePipeline:
    """
    Turns one inbound chat message into zero or more outbound messages.

    Steps run strictly in order and every failure ends the turn with a single
    fallback message. Turns for the same channel are serialized so the restart
    flag is never read and written by two turns at once.
    """

    def __init__(
        self,
        *,
        transport: ChatTransport,
        conversation_state: ConversationState,
        history: ChatHistoryTool,
        retriever: ContextRetriever,
        completion: CompletionTool,
        system_prompt: Optional[str] = None,
        error_message: Optional[str] = None,
        collection_name: Optional[str] = None,
        bot_id: Optional[str] = None,
        completion_model: Optional[str] = None,
        history_turns: Optional[int] = None,
        max_message_chars: Optional[int] = None,
        reset_command: Optional[str] = None,
        reset_ack_message: Optional[str] = None,
        placeholder_message: Optional[str] = None,
    ) -> None:
        self.transport = transport
        self.conversation_state = conversation_state
        self.history = history
        self.retriever = retriever
        self.completion = completion

        self.system_prompt = (
            system_prompt if system_prompt is not None else settings.system_prompt
        )
        self.error_message = (
            error_message if error_message is not None else settings.error_message
        )
        self.collection_name = (
            collection_name if collection_name is not None else settings.collection_name
        )
        self.bot_id = str(bot_id if bot_id is not None else (settings.bot_id or ""))
        self.completion_model = completion_model or settings.completion_model
        self.history_turns = (
            history_turns if history_turns is not None else settings.history_turns
        )
        self.max_message_chars = (
            max_message_chars if max_message_chars is not None else settings.max_message_chars
        )
        if self.max_message_chars <= 0:
            raise ValueError(f"max_message_chars must be positive, got {self.max_message_chars}")
        self.reset_command = reset_command or settings.reset_command
        self.reset_ack_message = reset_ack_message or settings.reset_ack_message
        self.placeholder_message = placeholder_message or settings.placeholder_message

        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    def is_reset_command(self, text: str) -> bool:
        return text.casefold() == self.reset_command.casefold()

    def addresses_bot(self, message: InboundMessage) -> bool:
        if message.is_direct:
            return True
        return self.bot_id in message.mention_ids

    async def handle(self, message: InboundMessage) -> PipelineResult:
        if message.author_is_bot:
            logger.debug("ignored bot message")
            return PipelineResult(PipelineOutcome.IGNORED)

        channel_id = message.channel_id
        text = message.content

        if self.is_reset_command(text):
            async with self._lock_for(channel_id):
                await self._restart(channel_id)
            return PipelineResult(PipelineOutcome.RESTARTED)

        if not self.addresses_bot(message):
            logger.debug("ignored guild message")
            return PipelineResult(PipelineOutcome.IGNORED)

        logger.info(f"Received message from {channel_id}")
        async with self._lock_for(channel_id):
            return await self._answer(channel_id, text)

    async def _restart(self, channel_id: str) -> None:
        try:
            await self.transport.send(channel_id, self.reset_ack_message)
        except TransportError as e:
            logger.error(f"Failed to acknowledge restart in {channel_id}: {e}")
        await self.conversation_state.set_restart(channel_id, True)
        logger.info(f"Restarted conversation for {channel_id}")

    async def _question_history(self, channel_id: str) -> List[str]:
        turns = await self.history.get_turns(channel_id, self.history_turns)
        return [turn.content for turn in turns if turn.role == "user"]

    async def _fail(self, channel_id: str, placeholder_id: str) -> PipelineResult:
        try:
            await self.transport.edit(channel_id, placeholder_id, self.error_message)
        except TransportError as e:
            logger.error(f"Failed to deliver error message to {channel_id}: {e}")
        return PipelineResult(PipelineOutcome.FAILED)

    async def _answer(self, channel_id: str, text: str) -> PipelineResult:
        try:
            placeholder_id = await self.transport.send(
                channel_id, self.placeholder_message
            )
        except TransportError as e:
            logger.error(f"Failed to send placeholder to {channel_id}: {e}")
            return PipelineResult(PipelineOutcome.FAILED)

        restart = await self.conversation_state.get_restart(channel_id)
        history = [] if restart else await self._question_history(channel_id)

        try:
            prompt = await self.retriever.retrieve(
                history=history,
                current_text=text,
                system_prompt=self.system_prompt,
                collection_id=self.collection_name,
            )
            reply = await self.completion.complete(
                channel_id,
                text,
                model=self.completion_model,
                restart=restart,
                system_prompt=prompt,
            )
        except NoRelevantContext:
            logger.info("No relevant context for question")
            return await self._fail(channel_id, placeholder_id)
        except PipelineError as e:
            logger.error(f"Turn failed for {channel_id}: {e}", exc_info=True)
            return await self._fail(channel_id, placeholder_id)

        chunks = split_message(reply, self.max_message_chars)
        if not chunks:
            return await self._fail(channel_id, placeholder_id)
        try:
            await self.transport.edit(channel_id, placeholder_id, chunks[0])
            for chunk in chunks[1:]:
                await self.transport.send(channel_id, chunk)
        except TransportError as e:
            logger.error(f"Failed to deliver answer to {channel_id}: {e}")
            return PipelineResult(PipelineOutcome.FAILED, chunks)

        # A successful restart. The next message will NOT be a restart
        if restart:
            logger.info("Detected restart = true")
            await self.conversation_state.clear_after_success(channel_id)

        return PipelineResult(PipelineOutcome.ANSWERED, chunks)
