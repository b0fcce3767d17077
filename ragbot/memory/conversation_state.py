"""
Conversation State

Tracks, per conversation id, whether the next turn must start fresh. The flag
lives in an injected key-value store so every worker sees the same value.
Store failures never abort a turn: reads report "not restarted" and writes
are logged.
"""

from __future__ import annotations

from ragbot.reason.interfaces import KeyValueStore
from ragbot.utils.logging import get_logger

logger = get_logger(__name__, category="chat")


class ConversationState:
    def __init__(self, store: KeyValueStore, key_prefix: str = "restart:") -> None:
        self.store = store
        self.key_prefix = key_prefix

    def _key(self, conversation_id: str) -> str:
        return f"{self.key_prefix}{conversation_id}"

    async def get_restart(self, conversation_id: str) -> bool:
        """Return the stored restart flag, or False if it was never set."""
        try:
            value = await self.store.get(self._key(conversation_id))
        except Exception as e:
            logger.error(f"Error reading restart flag for {conversation_id}: {e}")
            return False
        return value if isinstance(value, bool) else False

    async def set_restart(self, conversation_id: str, value: bool) -> None:
        try:
            await self.store.set(self._key(conversation_id), bool(value))
        except Exception as e:
            logger.error(f"Error saving restart flag for {conversation_id}: {e}")

    async def clear_after_success(self, conversation_id: str) -> None:
        """Reset the flag once a restarted turn has been answered."""
        await self.set_restart(conversation_id, False)
