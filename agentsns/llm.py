"""
Language model client.

Supports OpenAI-compatible chat completions (OPENAI, LOCAL), Anthropic
messages and Gemini generateContent, all over httpx.
"""

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from agentsns.exceptions import LlmError
from agentsns.logging import get_logger

DEFAULT_MODELS = {
    "OPENAI": "gpt-4o-mini",
    "LOCAL": "gpt-4o-mini",
    "ANTHROPIC": "claude-3-5-sonnet-20240620",
    "GEMINI": "gemini-1.5-flash-002",
}
DEFAULT_MAX_TOKENS = 1200
TEMPERATURE = 0.2
ANTHROPIC_VERSION = "2023-06-01"

logger = get_logger("engine")


def normalize_provider(value: str | None) -> str:
    return str(value or "OPENAI").strip().upper()


@dataclass
class LlmRequest:
    """One completion request."""

    provider: str
    api_key: str
    system: str
    user: str
    model: str | None = None
    base_url: str | None = None
    max_tokens: int | None = None

    @property
    def resolved_provider(self) -> str:
        return normalize_provider(self.provider)

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS.get(self.resolved_provider, DEFAULT_MODELS["OPENAI"])


class LlmClient:
    """
    Async language model client.

    Example:
        ```python
        llm = LlmClient()
        text = await llm.complete(LlmRequest(
            provider="ANTHROPIC", api_key=key, system="...", user="...",
        ))
        ```
    """

    def __init__(
        self,
        timeout: float = 120.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self._http_transport = http_transport

    async def complete(self, request: LlmRequest) -> str:
        """
        Run one completion and return the text.

        Raises:
            LlmError: On missing credentials, HTTP errors or network failures
        """
        if not request.api_key:
            raise LlmError("LLM_API_KEY_MISSING", "Missing LLM API key")

        provider = request.resolved_provider
        if provider == "GEMINI":
            url, headers, payload = self._gemini(request)
        elif provider == "ANTHROPIC":
            url, headers, payload = self._anthropic(request)
        else:
            url, headers, payload = self._openai(request)

        logger.debug("LLM request provider=%s model=%s", provider, request.resolved_model)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._http_transport) as client:
            try:
                response = await client.post(url, headers=headers, json=payload)
            except httpx.RequestError as e:
                raise LlmError("LLM_CONNECTION_ERROR", f"Failed to call LLM: {e}") from e

        data = self._parse_json(response)
        if response.status_code >= 400:
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            raise LlmError(
                f"HTTP_{response.status_code}",
                message or f"LLM request failed ({response.status_code})",
                status_code=response.status_code,
            )

        if provider == "GEMINI":
            return self._gemini_text(data)
        if provider == "ANTHROPIC":
            return self._anthropic_text(data)
        return self._openai_text(data)

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {"raw": response.text}
        return data if isinstance(data, dict) else {"raw": data}

    def _openai(self, request: LlmRequest) -> tuple[str, dict[str, str], dict[str, Any]]:
        base_url = (request.base_url or "https://api.openai.com/v1").rstrip("/")
        payload: dict[str, Any] = {
            "model": request.resolved_model,
            "temperature": TEMPERATURE,
            "messages": [
                {"role": "system", "content": request.system},
                {"role": "user", "content": request.user},
            ],
        }
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        headers = {"Authorization": f"Bearer {request.api_key}"}
        return f"{base_url}/chat/completions", headers, payload

    def _anthropic(self, request: LlmRequest) -> tuple[str, dict[str, str], dict[str, Any]]:
        base_url = (request.base_url or "https://api.anthropic.com").rstrip("/")
        payload = {
            "model": request.resolved_model,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "system": request.system,
            "messages": [{"role": "user", "content": request.user}],
        }
        headers = {"x-api-key": request.api_key, "anthropic-version": ANTHROPIC_VERSION}
        return f"{base_url}/v1/messages", headers, payload

    def _gemini(self, request: LlmRequest) -> tuple[str, dict[str, str], dict[str, Any]]:
        model = request.resolved_model
        url = request.base_url or (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            f"{quote(model, safe='')}:generateContent"
        )
        payload = {
            "contents": [
                {"role": "user", "parts": [{"text": f"{request.system}\n\n{request.user}"}]}
            ],
            "generationConfig": {
                "temperature": TEMPERATURE,
                "maxOutputTokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            },
        }
        headers = {"x-goog-api-key": request.api_key}
        return url, headers, payload

    @staticmethod
    def _openai_text(data: dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if choices and isinstance(choices[0], dict):
            content = (choices[0].get("message") or {}).get("content")
            if isinstance(content, str):
                return content
        return ""

    @staticmethod
    def _anthropic_text(data: dict[str, Any]) -> str:
        for block in data.get("content") or []:
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
                return block["text"]
        return ""

    @staticmethod
    def _gemini_text(data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if candidates and isinstance(candidates[0], dict):
            parts = (candidates[0].get("content") or {}).get("parts") or []
            if parts and isinstance(parts[0], dict) and isinstance(parts[0].get("text"), str):
                return parts[0]["text"]
        return ""
