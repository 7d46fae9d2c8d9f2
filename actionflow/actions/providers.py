"""
Generation providers for the AI node.

A provider turns a prompt into text. The engine only needs the
`generate` coroutine; GeminiProvider talks to the Gemini REST API.
"""

from typing import Any, Dict, Optional, Protocol
import logging

import httpx

from actionflow.config import settings


logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when the generation provider cannot produce text."""


class GenerationProvider(Protocol):
    async def generate(self, prompt: str, model: str) -> str:
        ...


class GeminiProvider:
    """Generation provider backed by the Gemini `generateContent` endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._api_base = api_base
        self._timeout = timeout
        self._transport = transport

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key or settings.GEMINI_API_KEY

    @property
    def api_base(self) -> str:
        return (self._api_base or settings.GEMINI_API_BASE).rstrip("/")

    async def generate(self, prompt: str, model: str) -> str:
        if not self.api_key:
            raise ProviderError("API Key not found in environment variables.")

        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        async with httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT if self._timeout is None else self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(
                    f"{self.api_base}/models/{model}:generateContent",
                    json=payload,
                    headers={"x-goog-api-key": self.api_key},
                )
            except httpx.HTTPError as e:
                logger.error(f"Gemini API Error: {e}")
                raise ProviderError(f"Gemini request failed: {e}") from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.error(f"Gemini API Error (HTTP {response.status_code}): {detail}")
            raise ProviderError(f"Gemini API error (HTTP {response.status_code}): {detail}")

        return _extract_text(response.json()) or "No response generated."


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("message", response.text)
    except ValueError:
        return response.text


def _extract_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)
