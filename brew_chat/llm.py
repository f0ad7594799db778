"""LLM client — HTTP connection to a text-generation service.

The turn driver injects an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` identifies which kind of turn is calling ("opening" or "reply").
The implementation may use it for logging; the simplest ignores it.

Two implementations are provided:

    HttpLLM   — real HTTP client, supports Gemini generateContent and
                OpenAI-compatible completion backends. Selected by
                provider_format.
    EchoLLM   — returns the prompt back unchanged. Useful for smoke-testing
                the chat flow without a model.

Production code constructs an HttpLLM from config and hands it to the
TurnDriver. Tests use StubLLM (see conftest.py) instead.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM — connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["gemini", "openai"]

GEMINI_URL = "https://generativelanguage.googleapis.com"
DEFAULT_MODEL = "gemini-1.5-flash"

# Content filtering is switched off in every category.
SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in SAFETY_CATEGORIES
]


class HttpLLM:
    """Async HTTP client for text-generation backends.

    Supported formats:
      "gemini"  — POST /v1beta/models/{model}:generateContent?key=...
                  {"contents": [{"parts": [{"text": ...}]}], "safetySettings": [...]}
                  Response: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}
      "openai"  — POST /v1/completions   {"model": ..., "prompt": ...}
                  Response: {"choices": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend. Defaults to the public Gemini API.
        api_key:         API key (query parameter for Gemini, bearer token for
                         OpenAI-compatible backends), or empty string.
        provider_format: Wire format to use. Defaults to "gemini".
        model:           Model identifier.
        timeout:         HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        provider_url: str = GEMINI_URL,
        api_key: str = "",
        provider_format: ProviderFormat = "gemini",
        model: str = DEFAULT_MODEL,
        timeout: float = 120.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key and self._format == "openai":
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict, dict[str, str]]:
        """Return (url, body, query params) for the configured format."""
        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body: dict = {"prompt": prompt}
            if self._model:
                body["model"] = self._model
            return url, body, {}

        # gemini (default)
        url = f"{self._base_url}/v1beta/models/{self._model}:generateContent"
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "safetySettings": SAFETY_SETTINGS,
        }
        params = {"key": self._api_key} if self._api_key else {}
        return url, body, params

    def _parse_response(self, data: dict) -> str:
        """Extract the generated text from the response body."""
        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        # gemini
        candidates = data.get("candidates")
        if not candidates:
            reason = data.get("promptFeedback", {}).get("blockReason")
            if reason:
                raise LLMError(f"Gemini blocked the prompt: {reason}")
            raise LLMError("Unexpected response format from Gemini backend")
        parts = candidates[0].get("content", {}).get("parts")
        if not parts:
            raise LLMError("Unexpected response format from Gemini backend")
        return "".join(part.get("text", "") for part in parts)

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body, params = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    url, json=body, params=params, headers=self._headers()
                )
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# EchoLLM — returns the prompt unchanged; useful for smoke tests
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the prompt text as-is. No network calls.

    Every prompt line that contains a colon parses as a speaker segment,
    so the chat flow can be exercised end-to-end without a model.
    """

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("EchoLLM stage=%s prompt_len=%d", stage, len(prompt))
        return prompt


# ---------------------------------------------------------------------------
# LLMError — raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
