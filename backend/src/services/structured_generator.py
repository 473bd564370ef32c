"""Schema-constrained text generation over HTTP.

Each provider is asked for a single JSON object that conforms to a JSON
schema. OpenAI and OpenRouter use strict ``json_schema`` response formats;
Anthropic is given one forced tool whose input schema is the target schema.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ..models.extraction import CollaboratorSelection
from .config import SUPPORTED_PROVIDERS, AppConfig
from .errors import GenerationError, NoCredentialError

logger = logging.getLogger(__name__)

DEFAULT_MODELS: Dict[str, str] = {
    "openai": "gpt-4o",
    "anthropic": "claude-sonnet-4-20250514",
    "openrouter": "openai/gpt-4o",
}


class StructuredGenerator(ABC):
    """Turns a prompt plus JSON schema into one schema-shaped object."""

    provider: str = ""

    def __init__(self, api_key: str, model: Optional[str] = None, timeout: float = 60.0):
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS[self.provider]
        self.timeout = timeout

    @abstractmethod
    async def generate(self, prompt: str, schema: Dict[str, Any], name: str) -> Dict[str, Any]:
        """Return the decoded object. Raises GenerationError on any failure."""

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"{self.provider} API error: {e.response.status_code}")
            raise GenerationError(
                f"{self.provider} API error: {e.response.status_code}",
                {"status_code": e.response.status_code},
            ) from e
        except httpx.TimeoutException as e:
            raise GenerationError(f"{self.provider} request timeout") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"{self.provider} request failed: {e}") from e
        except ValueError as e:
            raise GenerationError(f"{self.provider} returned a non-JSON body") from e


class OpenAIGenerator(StructuredGenerator):
    """OpenAI chat completions with a strict JSON schema response format."""

    provider = "openai"
    BASE_URL = "https://api.openai.com/v1"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def generate(self, prompt: str, schema: Dict[str, Any], name: str) -> Dict[str, Any]:
        data = await self._post(
            f"{self.BASE_URL}/chat/completions",
            self._headers(),
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "response_format": {
                    "type": "json_schema",
                    "json_schema": {"name": name, "strict": True, "schema": schema},
                },
                "temperature": 0.2,
            },
        )

        choices = data.get("choices", [])
        if not choices:
            raise GenerationError("No response from model")
        message = choices[0].get("message", {})
        if message.get("refusal"):
            raise GenerationError(f"Model refused: {message['refusal']}")
        content = message.get("content") or ""
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise GenerationError("Model output is not valid JSON") from e


class OpenRouterGenerator(OpenAIGenerator):
    """OpenRouter exposes the OpenAI-compatible endpoint."""

    provider = "openrouter"
    BASE_URL = "https://openrouter.ai/api/v1"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["X-Title"] = "Contextory Extraction"
        return headers


class AnthropicGenerator(StructuredGenerator):
    """Anthropic messages API with a single forced tool call."""

    provider = "anthropic"
    BASE_URL = "https://api.anthropic.com/v1"
    API_VERSION = "2023-06-01"
    MAX_TOKENS = 8192

    async def generate(self, prompt: str, schema: Dict[str, Any], name: str) -> Dict[str, Any]:
        data = await self._post(
            f"{self.BASE_URL}/messages",
            {
                "x-api-key": self.api_key,
                "anthropic-version": self.API_VERSION,
                "content-type": "application/json",
            },
            {
                "model": self.model,
                "max_tokens": self.MAX_TOKENS,
                "messages": [{"role": "user", "content": prompt}],
                "tools": [
                    {
                        "name": name,
                        "description": "Record the structured extraction result.",
                        "input_schema": schema,
                    }
                ],
                "tool_choice": {"type": "tool", "name": name},
            },
        )

        for block in data.get("content", []):
            if block.get("type") == "tool_use" and block.get("name") == name:
                payload = block.get("input")
                if isinstance(payload, dict):
                    return payload
        raise GenerationError("Model did not return the structured tool call")


GENERATORS = {
    "openai": OpenAIGenerator,
    "anthropic": AnthropicGenerator,
    "openrouter": OpenRouterGenerator,
}


def get_generator(selection: CollaboratorSelection, config: AppConfig) -> StructuredGenerator:
    """Build the generator for a caller's provider choice.

    A per-request credential wins over the configured one; with neither,
    NoCredentialError is raised.
    """
    provider = (selection.provider or config.extraction_provider).strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise NoCredentialError(
            f"Unsupported provider: {provider}", {"provider": provider}
        )
    api_key = (selection.credential or "").strip() or config.credential_for(provider)
    if not api_key:
        raise NoCredentialError(
            f"No API key configured for {provider}", {"provider": provider}
        )
    return GENERATORS[provider](
        api_key=api_key,
        model=selection.model,
        timeout=config.llm_timeout_seconds,
    )


__all__ = [
    "DEFAULT_MODELS",
    "StructuredGenerator",
    "OpenAIGenerator",
    "OpenRouterGenerator",
    "AnthropicGenerator",
    "GENERATORS",
    "get_generator",
]
