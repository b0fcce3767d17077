"""
Chat History Store

Per-conversation list of chat turns kept in Redis. The completion service
replays these turns to the model and appends to them after each answered
turn; the pipeline reads the recent user turns to build its retrieval text.
"""

from __future__ import annotations

import json
from typing import List

from ragbot.memory.redis_store import RedisKeyValueStore
from ragbot.reason.interfaces import ChatTurn
from ragbot.utils.logging import get_logger

logger = get_logger(__name__, category="chat")


class ChatHistoryStore:
    """Chat turns stored as a capped Redis list, oldest first."""

    def __init__(self, store: RedisKeyValueStore, max_turns: int = 40) -> None:
        """
        Args:
            store: Connected key-value store whose Redis client is shared
            max_turns: Maximum number of turns kept per conversation
        """
        self.store = store
        self.max_turns = max_turns

    def _get_history_key(self, conversation_id: str) -> str:
        return f"{self.store.key_prefix}chat_history:{conversation_id}"

    def _client(self):
        if not self.store.is_connected or self.store.redis_client is None:
            raise ConnectionError("Redis is not connected")
        return self.store.redis_client

    async def get_turns(self, conversation_id: str, limit: int) -> List[ChatTurn]:
        """
        Most recent turns of a conversation in chronological order.

        Args:
            conversation_id: Channel id
            limit: Maximum number of turns, counted from the newest

        Returns:
            Up to ``limit`` turns; empty when nothing is stored or Redis fails
        """
        if limit <= 0:
            return []
        try:
            raw = await self._client().lrange(
                self._get_history_key(conversation_id), -limit, -1
            )
        except Exception as e:
            logger.error(f"Error retrieving chat history for {conversation_id}: {e}")
            return []

        turns: List[ChatTurn] = []
        for item in raw:
            try:
                data = json.loads(item)
                turns.append(ChatTurn(role=data["role"], content=data["content"]))
            except (ValueError, KeyError, TypeError):
                logger.warning(f"Skipping malformed history entry for {conversation_id}")
        return turns

    async def append_turns(
        self, conversation_id: str, turns: List[ChatTurn], *, reset: bool = False
    ) -> None:
        """
        Append turns, optionally discarding the stored history first.

        The reset, append and trim run in one MULTI/EXEC transaction.
        """
        key = self._get_history_key(conversation_id)
        pipe = self._client().pipeline(transaction=True)
        if reset:
            pipe.delete(key)
        if turns:
            pipe.rpush(key, *[json.dumps(turn.to_dict()) for turn in turns])
        pipe.ltrim(key, -self.max_turns, -1)
        await pipe.execute()
