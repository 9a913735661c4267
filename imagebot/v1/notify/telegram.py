"""
Telegram Bot API notification sink.
"""

from typing import Any

import httpx

from imagebot.config.logging import get_logger
from imagebot.v1.core.exceptions import NotificationError
from imagebot.v1.notify.base import Artifact

logger = get_logger(__name__)


class TelegramNotifier:
    """Sends messages, photos and documents through the Bot HTTP API."""

    def __init__(self, client: httpx.AsyncClient, token: str):
        if not token:
            raise ValueError("Telegram bot token is required")
        self.client = client
        self._token = token

    async def notify(self, destination: str, message: str) -> None:
        await self._call("sendMessage", data={"chat_id": destination, "text": message})

    async def deliver(
        self, destination: str, artifact: Artifact, filename: str | None = None
    ) -> None:
        method, field = ("sendDocument", "document") if filename else ("sendPhoto", "photo")
        data = {"chat_id": destination}

        if isinstance(artifact, bytes):
            upload_name = filename or "image.png"
            await self._call(method, data=data, files={field: (upload_name, artifact)})
        else:
            await self._call(method, data={**data, field: artifact})

    async def _call(
        self,
        method: str,
        data: dict[str, Any],
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"/bot{self._token}/{method}"
        try:
            response = await self.client.post(url, data=data, files=files)
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NotificationError(f"Telegram {method} failed: {e}") from e

        if response.status_code >= 400 or not body.get("ok", False):
            description = body.get("description", f"HTTP {response.status_code}")
            raise NotificationError(
                f"Telegram {method} failed: {description}",
                details={"chat_id": data.get("chat_id"), "method": method},
            )

        logger.debug("telegram_call_ok", method=method, chat_id=data.get("chat_id"))
        return body.get("result") or {}


def create_telegram_client(base_url: str, timeout_s: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout_s)
