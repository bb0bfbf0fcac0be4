"""Minimal async client for an OpenAI-compatible chat-completions endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

import httpx

from codeassess.core.errors import BackendUnavailable, MalformedBackendResponse

SERVICE_NAME = "Question generation service"


@dataclass
class ChatConfig:
    base_url: str
    api_key: str | None = None
    model: str = "google/gemini-2.5-flash"
    temperature: float = 0.7


class ChatCompletionsClient:
    def __init__(
        self,
        config: ChatConfig,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._config = config
        if client is None:
            self._client = httpx.AsyncClient(base_url=config.base_url, timeout=timeout)
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    @property
    def model(self) -> str:
        return self._config.model

    async def complete(self, prompt: str) -> str:
        """Send one user message and return the assistant's text content."""

        payload = {
            "model": self._config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._config.temperature,
        }
        try:
            response = await self._client.post("/chat/completions", json=payload, headers=self._build_headers())
        except httpx.HTTPError as exc:
            raise BackendUnavailable(SERVICE_NAME, f"{type(exc).__name__}: {exc}") from exc
        if not response.is_success:
            raise BackendUnavailable(SERVICE_NAME, response.reason_phrase, status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedBackendResponse("Chat completion body is not JSON") from exc
        return _message_content(data)

    async def aclose(self) -> None:
        if getattr(self, "_owns_client", False):
            await self._client.aclose()

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers


def _message_content(data: Any) -> str:
    choices: List[Any] | None = data.get("choices") if isinstance(data, dict) else None
    if not choices or not isinstance(choices[0], dict):
        raise MalformedBackendResponse("Chat completion has no choices")
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise MalformedBackendResponse("Chat completion has no message content")
    return content


__all__ = ["ChatCompletionsClient", "ChatConfig"]
