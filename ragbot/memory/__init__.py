"""
Memory layer: vector index, conversation state and chat history
"""

from .chat_history import ChatHistoryStore
from .conversation_state import ConversationState
from .redis_store import RedisKeyValueStore
from .vector_store import VectorStore

__all__ = ["ChatHistoryStore", "ConversationState", "RedisKeyValueStore", "VectorStore"]
