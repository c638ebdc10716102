"""HTTP client for Ollama's chat endpoint with tool calling."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)


class OllamaChatClient:
    """Non-streaming ``/api/chat`` calls against a primary and fallback host."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.OLLAMA_HOST
        self.model = model or settings.OLLAMA_MODEL
        self.timeout = timeout or settings.OLLAMA_TIMEOUT
        self.transport = transport

    async def _post(self, host: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(base_url=host, timeout=self.timeout, transport=self.transport) as client:
            response = await client.post("/api/chat", json=payload)
            response.raise_for_status()
            return response.json()

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Send one chat turn and return the assistant message."""

        payload: Dict[str, Any] = {"model": self.model, "messages": messages, "stream": False}
        if tools:
            payload["tools"] = tools

        try:
            data = await self._post(self.base_url, payload)
        except httpx.TransportError as primary_error:
            fallback_host = settings.OLLAMA_FALLBACK_HOST
            if not fallback_host or fallback_host == self.base_url:
                raise
            logger.warning(
                "Primary Ollama host %s unreachable (%s); retrying with fallback %s",
                self.base_url,
                primary_error,
                fallback_host,
            )
            try:
                data = await self._post(fallback_host, payload)
            except httpx.TransportError as fallback_error:
                raise fallback_error from primary_error

        message = data.get("message") or {}
        return {
            "role": message.get("role", "assistant"),
            "content": message.get("content") or "",
            "tool_calls": message.get("tool_calls") or [],
        }
