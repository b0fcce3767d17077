"""
Discord REST transport

Only the two calls the bot needs: create a message and edit one it sent.
"""

import asyncio
from typing import Optional

import httpx

from ragbot.config import settings
from ragbot.utils.logging import get_logger

logger = get_logger(__name__, category="chat")


class TransportError(Exception):
    """A message could not be delivered to the chat platform."""


class DiscordTransport:
    def __init__(
        self,
        token: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.token = token or settings.discord_token or ""
        self.api_base = (api_base or settings.discord_api_base).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.discord_timeout_seconds
        self._client = http_client
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        timeout=httpx.Timeout(self.timeout_seconds, connect=10.0),
                        headers={
                            "Authorization": f"Bot {self.token}",
                            "Content-Type": "application/json",
                        },
                    )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, content: str) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(
                method, f"{self.api_base}{path}", json={"content": content}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"Discord API {method} {path} returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Discord API {method} {path} failed: {exc}") from exc
        return response

    async def send(self, channel_id: str, content: str) -> str:
        """
        Post a new message to a channel.

        Returns:
            The id of the created message, used later to edit it
        """
        response = await self._request("POST", f"/channels/{channel_id}/messages", content)
        message_id = response.json().get("id")
        if not message_id:
            raise TransportError("Discord API response did not include a message id")
        return str(message_id)

    async def edit(self, channel_id: str, message_id: str, content: str) -> None:
        """Replace the content of a message the bot sent earlier."""
        await self._request(
            "PATCH", f"/channels/{channel_id}/messages/{message_id}", content
        )
