"""
Message Schemas

Pydantic models for the HTTP surface: messages relayed from the chat
gateway, the acknowledgement we send back, and the retrieval debug view.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class InboundMessage(BaseModel):
    """
    Chat message forwarded by the gateway relay

    ``guild_id`` is set for messages posted in a server channel, where the
    bot only answers when mentioned. Direct messages leave it empty.
    """

    channel_id: str = Field(..., description="Channel the message was posted in")
    message_id: Optional[str] = Field(None, description="Platform id of the message")
    author_id: str = Field(..., description="User id of the author")
    author_is_bot: bool = Field(False, description="Whether the author is a bot account")
    guild_id: Optional[str] = Field(None, description="Server id, empty for direct messages")
    mention_ids: List[str] = Field(default_factory=list, description="User ids mentioned")
    content: str = Field(..., description="The message text")
    timestamp: Optional[datetime] = Field(None, description="When the message was sent")

    class Config:
        json_schema_extra = {
            "example": {
                "channel_id": "1122334455",
                "message_id": "9988776655",
                "author_id": "5544332211",
                "author_is_bot": False,
                "guild_id": "1000000001",
                "mention_ids": ["123456789"],
                "content": "<@123456789> What is X?",
                "timestamp": "2025-01-01T00:00:00Z",
            }
        }

    @property
    def is_direct(self) -> bool:
        return self.guild_id is None


class MessageReceived(BaseModel):
    """Acknowledgement returned to the relay once the turn has finished."""

    received: bool = Field(..., description="Always True if we got here")
    message_id: str = Field(..., description="Unique ID for tracking")
    timestamp: datetime = Field(..., description="When we received it")
    outcome: str = Field(..., description="ignored, restarted, answered or failed")
    chunks: int = Field(0, description="Number of messages the answer was split into")


class RAGContextRequest(BaseModel):
    question: str = Field(..., description="Question to retrieve context for")
    collection: Optional[str] = Field(None, description="Override the configured collection")
    top_k: Optional[int] = Field(None, description="Override number of passages to retrieve")


class RAGContextResponse(BaseModel):
    relevant: bool
    system_prompt: str
    prompt_chars: int
