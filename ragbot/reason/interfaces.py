from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol


class EmbeddingTool(Protocol):
    async def __call__(self, text: str) -> List[float]:
        ...


class VectorSearchTool(Protocol):
    async def search(
        self, collection: str, query_embedding: List[float], limit: int
    ) -> List[Dict[str, Any]]:
        ...


class CompletionTool(Protocol):
    async def complete(
        self,
        conversation_id: str,
        text: str,
        *,
        model: str,
        restart: bool,
        system_prompt: str,
    ) -> str:
        ...


class ChatHistoryTool(Protocol):
    async def get_turns(self, conversation_id: str, limit: int) -> List[ChatTurn]:
        ...

    async def append_turns(
        self, conversation_id: str, turns: List[ChatTurn], *, reset: bool = False
    ) -> None:
        ...


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...


class ChatTransport(Protocol):
    async def send(self, channel_id: str, content: str) -> str:
        ...

    async def edit(self, channel_id: str, message_id: str, content: str) -> None:
        ...


@dataclass
class RetrievedPassage:
    score: float
    text: str


@dataclass
class ChatTurn:
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}
