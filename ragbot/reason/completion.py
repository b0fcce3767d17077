from __future__ import annotations

import asyncio
import random
import time
from typing import List, Optional

from openai import APIConnectionError, APIError, APITimeoutError, OpenAI, RateLimitError

from ragbot.config import settings
from ragbot.reason.errors import CompletionError
from ragbot.reason.interfaces import ChatHistoryTool, ChatTurn
from ragbot.utils.logging import get_logger

logger = get_logger(__name__, category="completion")


class CompletionService:
    """Chat completions that remember the conversation.

    The service owns each conversation's turn history: it replays stored turns
    to the model and records the new exchange once the model has answered. A
    restarted turn ignores the stored turns and replaces them on success.
    """

    def __init__(
        self,
        *,
        history_store: ChatHistoryTool,
        openai_client: Optional[OpenAI] = None,
        retry_times: Optional[int] = None,
        temperature: Optional[float] = None,
        replay_turns: Optional[int] = None,
    ) -> None:
        self.history_store = history_store
        self.retry_times = (
            retry_times if retry_times is not None else settings.openai_retry_times
        )
        self.temperature = (
            temperature if temperature is not None else settings.completion_temperature
        )
        self.replay_turns = replay_turns or settings.chat_history_max_turns

        if openai_client is not None:
            self._client = openai_client
        else:
            if not settings.openai_api_key:
                raise ValueError("OPENAI_API_KEY is required for completions")
            self._client = OpenAI(api_key=settings.openai_api_key)

    async def _build_messages(
        self, conversation_id: str, text: str, *, restart: bool, system_prompt: str
    ) -> List[dict]:
        messages: List[dict] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        if not restart:
            turns = await self.history_store.get_turns(
                conversation_id, self.replay_turns
            )
            messages.extend(turn.to_dict() for turn in turns)
        messages.append({"role": "user", "content": text})
        return messages

    async def _call_llm(self, *, model: str, messages: List[dict]) -> str:
        delay_seconds = 0.5
        max_attempts = self.retry_times + 1
        kwargs = {"model": model, "messages": messages}
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature

        for attempt in range(max_attempts):
            try:
                response = await asyncio.to_thread(
                    self._client.chat.completions.create, **kwargs
                )
                choice = response.choices[0].message
                return choice.content if choice and choice.content else ""

            except (RateLimitError, APITimeoutError, APIConnectionError, APIError) as exc:
                if attempt == max_attempts - 1:
                    raise
                logger.warning(
                    f"Completion request failed (attempt {attempt + 1}/{max_attempts}): {exc}"
                )
                await asyncio.sleep(delay_seconds + random.random() * 0.25)
                delay_seconds *= 2

        return ""

    async def complete(
        self,
        conversation_id: str,
        text: str,
        *,
        model: str,
        restart: bool,
        system_prompt: str,
    ) -> str:
        """
        Answer ``text`` as the next turn of ``conversation_id``.

        Raises:
            CompletionError: the model call failed or produced no text
        """
        messages = await self._build_messages(
            conversation_id, text, restart=restart, system_prompt=system_prompt
        )

        t0 = time.monotonic()
        try:
            reply = await self._call_llm(model=model, messages=messages)
        except Exception as exc:
            raise CompletionError(f"OpenAI returned an error: {exc}") from exc
        t1 = time.monotonic()

        if not reply.strip():
            raise CompletionError("OpenAI returned an empty completion")

        try:
            await self.history_store.append_turns(
                conversation_id,
                [ChatTurn("user", text), ChatTurn("assistant", reply)],
                reset=restart,
            )
        except Exception as e:
            logger.warning(f"Failed to record chat history for {conversation_id}: {e}")

        logger.debug(
            {
                "telemetry": "rag.llm",
                "llm_ms": int((t1 - t0) * 1000),
                "messages": len(messages),
                "answer_chars": len(reply),
            }
        )
        return reply
