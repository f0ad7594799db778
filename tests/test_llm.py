"""Tests for brew_chat.llm — HttpLLM and EchoLLM."""

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from brew_chat.llm import DEFAULT_MODEL, SAFETY_SETTINGS, EchoLLM, HttpLLM, LLMError


# ---------------------------------------------------------------------------
# EchoLLM
# ---------------------------------------------------------------------------

class TestEchoLLM:
    async def test_returns_prompt_unchanged(self) -> None:
        llm = EchoLLM()
        result = await llm("reply", "hello world")
        assert result == "hello world"

    async def test_stage_name_ignored(self) -> None:
        llm = EchoLLM()
        assert await llm("opening", "x") == await llm("reply", "x")


# ---------------------------------------------------------------------------
# HttpLLM — Gemini format
# ---------------------------------------------------------------------------

def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _gemini_body(*texts: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]}


class TestHttpLLMGemini:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(api_key="secret")

    async def test_happy_path(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("Mira: Hello.")))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("reply", "Say hello.")
        assert result == "Mira: Hello."

    async def test_joins_multiple_parts(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("Mira: Hi.\n", "Narrator: Rain.")))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("reply", "prompt")
        assert result == "Mira: Hi.\nNarrator: Rain."

    async def test_posts_to_model_url(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("reply", "prompt")
        url = mock_post.call_args[0][0]
        assert url == (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            f"{DEFAULT_MODEL}:generateContent"
        )

    async def test_api_key_sent_as_query_param(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("reply", "prompt")
        assert mock_post.call_args.kwargs["params"] == {"key": "secret"}
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    async def test_sends_prompt_and_permissive_safety_settings(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("reply", "my prompt")
        sent = mock_post.call_args.kwargs["json"]
        assert sent["contents"][0]["parts"] == [{"text": "my prompt"}]
        assert sent["safetySettings"] == SAFETY_SETTINGS
        assert {s["threshold"] for s in sent["safetySettings"]} == {"BLOCK_NONE"}
        assert len(sent["safetySettings"]) == 4

    async def test_custom_model(self) -> None:
        llm = HttpLLM(model="gemini-2.0-flash")
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("reply", "prompt")
        assert mock_post.call_args[0][0].endswith("/models/gemini-2.0-flash:generateContent")

    async def test_blocked_prompt_raises_llm_error(self, llm: HttpLLM) -> None:
        body = {"promptFeedback": {"blockReason": "OTHER"}}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="blocked"):
                await llm("reply", "prompt")

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"unexpected": "format"}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("reply", "prompt")

    async def test_candidate_without_parts_raises_llm_error(self, llm: HttpLLM) -> None:
        body = {"candidates": [{"finishReason": "SAFETY"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("reply", "prompt")

    async def test_connect_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Cannot connect"):
                await llm("reply", "prompt")

    async def test_timeout_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="timed out"):
                await llm("reply", "prompt")

    async def test_http_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=429))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="HTTP 429"):
                await llm("reply", "prompt")


# ---------------------------------------------------------------------------
# HttpLLM — OpenAI format
# ---------------------------------------------------------------------------

class TestHttpLLMOpenAI:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(
            provider_url="http://localhost:8080/",
            provider_format="openai",
            model="mistral-7b",
            api_key="token",
        )

    async def test_posts_to_correct_url(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("reply", "prompt")
        assert mock_post.call_args[0][0] == "http://localhost:8080/v1/completions"

    async def test_sends_model_and_bearer_token(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("reply", "prompt")
        assert mock_post.call_args.kwargs["json"] == {"prompt": "prompt", "model": "mistral-7b"}
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer token"
        assert mock_post.call_args.kwargs["params"] == {}

    async def test_happy_path(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "A stormy night."}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            assert await llm("reply", "prompt") == "A stormy night."

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("wrong format")))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("reply", "prompt")
