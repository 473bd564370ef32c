"""Unit tests for the schema-constrained generators (HTTP mocked)."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from backend.src.models.extraction import CollaboratorSelection
from backend.src.services.config import AppConfig
from backend.src.services.errors import GenerationError, NoCredentialError
from backend.src.services.structured_generator import (
    AnthropicGenerator,
    OpenAIGenerator,
    OpenRouterGenerator,
    get_generator,
)

SCHEMA = {"type": "object", "properties": {"summary": {"type": "string"}}}
RESULT = {"summary": "ok", "suggestions": []}


def _response(payload, status_code: int = 200) -> httpx.Response:
    request = httpx.Request("POST", "https://example.test")
    return httpx.Response(status_code, json=payload, request=request)


@pytest.fixture
def mock_client():
    """Patch httpx.AsyncClient so .post returns a configurable response."""
    with patch("backend.src.services.structured_generator.httpx.AsyncClient") as client_cls:
        client = MagicMock()
        client.post = AsyncMock()
        client_cls.return_value.__aenter__ = AsyncMock(return_value=client)
        client_cls.return_value.__aexit__ = AsyncMock(return_value=False)
        yield client


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(database_path=tmp_path / "x.db", openai_api_key="sk-server", llm_timeout_seconds=5)


class TestOpenAI:
    @pytest.mark.asyncio
    async def test_strict_schema_request_and_decoding(self, mock_client) -> None:
        mock_client.post.return_value = _response(
            {"choices": [{"message": {"content": json.dumps(RESULT)}}]}
        )

        result = await OpenAIGenerator("sk-test").generate("prompt", SCHEMA, "extraction_result")

        assert result == RESULT
        url = mock_client.post.call_args.args[0]
        payload = mock_client.post.call_args.kwargs["json"]
        headers = mock_client.post.call_args.kwargs["headers"]
        assert url == "https://api.openai.com/v1/chat/completions"
        assert payload["model"] == "gpt-4o"
        assert payload["response_format"]["json_schema"] == {
            "name": "extraction_result",
            "strict": True,
            "schema": SCHEMA,
        }
        assert headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_refusal_raises(self, mock_client) -> None:
        mock_client.post.return_value = _response(
            {"choices": [{"message": {"content": None, "refusal": "no"}}]}
        )

        with pytest.raises(GenerationError, match="refused"):
            await OpenAIGenerator("sk-test").generate("prompt", SCHEMA, "x")

    @pytest.mark.asyncio
    async def test_invalid_json_content_raises(self, mock_client) -> None:
        mock_client.post.return_value = _response({"choices": [{"message": {"content": "{oops"}}]})

        with pytest.raises(GenerationError, match="not valid JSON"):
            await OpenAIGenerator("sk-test").generate("prompt", SCHEMA, "x")

    @pytest.mark.asyncio
    async def test_http_error_raises(self, mock_client) -> None:
        mock_client.post.return_value = _response({"error": "bad key"}, status_code=401)

        with pytest.raises(GenerationError) as exc_info:
            await OpenAIGenerator("sk-test").generate("prompt", SCHEMA, "x")

        assert exc_info.value.details == {"status_code": 401}

    @pytest.mark.asyncio
    async def test_timeout_raises(self, mock_client) -> None:
        mock_client.post.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(GenerationError, match="timeout"):
            await OpenAIGenerator("sk-test").generate("prompt", SCHEMA, "x")


@pytest.mark.asyncio
async def test_openrouter_uses_compatible_endpoint(mock_client) -> None:
    mock_client.post.return_value = _response(
        {"choices": [{"message": {"content": json.dumps(RESULT)}}]}
    )

    await OpenRouterGenerator("sk-or").generate("prompt", SCHEMA, "x")

    assert mock_client.post.call_args.args[0] == "https://openrouter.ai/api/v1/chat/completions"
    assert mock_client.post.call_args.kwargs["json"]["model"] == "openai/gpt-4o"


class TestAnthropic:
    @pytest.mark.asyncio
    async def test_forced_tool_call(self, mock_client) -> None:
        mock_client.post.return_value = _response(
            {
                "content": [
                    {"type": "text", "text": "thinking"},
                    {"type": "tool_use", "name": "extraction_result", "input": RESULT},
                ]
            }
        )

        result = await AnthropicGenerator("sk-ant").generate("prompt", SCHEMA, "extraction_result")

        payload = mock_client.post.call_args.kwargs["json"]
        assert result == RESULT
        assert payload["tool_choice"] == {"type": "tool", "name": "extraction_result"}
        assert payload["tools"][0]["input_schema"] == SCHEMA

    @pytest.mark.asyncio
    async def test_missing_tool_call_raises(self, mock_client) -> None:
        mock_client.post.return_value = _response({"content": [{"type": "text", "text": "hi"}]})

        with pytest.raises(GenerationError):
            await AnthropicGenerator("sk-ant").generate("prompt", SCHEMA, "extraction_result")


class TestGetGenerator:
    def test_uses_configured_default_provider_and_key(self, config: AppConfig) -> None:
        generator = get_generator(CollaboratorSelection(), config)

        assert isinstance(generator, OpenAIGenerator)
        assert generator.api_key == "sk-server"
        assert generator.timeout == 5

    def test_request_credential_and_model_win(self, config: AppConfig) -> None:
        generator = get_generator(
            CollaboratorSelection(provider="Anthropic", model="claude-x", credential="sk-user"),
            config,
        )

        assert isinstance(generator, AnthropicGenerator)
        assert (generator.api_key, generator.model) == ("sk-user", "claude-x")

    def test_missing_key_raises(self, config: AppConfig) -> None:
        with pytest.raises(NoCredentialError):
            get_generator(CollaboratorSelection(provider="openrouter"), config)

    def test_unknown_provider_raises(self, config: AppConfig) -> None:
        with pytest.raises(NoCredentialError):
            get_generator(CollaboratorSelection(provider="mystery"), config)
