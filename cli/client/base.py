"""Base HTTP Client for the Image Bot API"""

from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

console = Console()


class ImageBotError(Exception):
    """Base exception for Image Bot API errors"""

    pass


class APIClient:
    """Synchronous client for the versioned JSON API; unwraps response envelopes"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: int = 30,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=f"{self.base_url}/v1",
            timeout=timeout,
            headers=headers or {},
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> dict[str, Any]:
        return self._request("POST", path, json=json)

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self.client.request(method, path.lstrip("/"), **kwargs)
        except httpx.RequestError as e:
            console.print(f"[red]Connection error: {e}[/red]")
            raise ImageBotError(f"Connection failed: {e}") from None
        return self._unwrap(response)

    def _unwrap(self, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            console.print(f"[red]Failed to parse response: {response.text}[/red]")
            raise ImageBotError(
                f"Invalid JSON response: {response.status_code}"
            ) from None

        if response.is_error or body.get("ok") is False:
            message = (body.get("error") or {}).get("message", "Request failed")
            console.print(Panel(f"[red]{message}[/red]", title="API Error"))
            raise ImageBotError(f"API Error {response.status_code}: {message}")

        return body.get("data", {}) if "ok" in body else body
