"""
Provider Clients
================

One client per text-generation backend, all behind the same async
``generate(backend_model_id, messages)`` capability. Each variant owns exactly
one SDK client handle and translates the canonical three-role message list
into whatever shape its backend expects.

Failure translation (shared by every variant):
- credential missing            -> ProviderUnavailable (no network call made)
- timeout                       -> GenerationFailed
- transport unreachable         -> ProviderUnavailable
- anything else the call raises -> GenerationFailed

The core never retries; SDK clients are built with ``max_retries=0``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar

import anthropic
import httpx
import openai
from google import genai
from google.genai import types as genai_types

from .errors import GenerationFailed, ProviderUnavailable, RouterError, sanitize_for_logging
from .models import LlmMessage, LlmResponse, ProviderId

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_OUTPUT_TOKENS = 1024


class BaseProvider(ABC):
    """Abstract base class for backend clients"""

    provider_id: ClassVar[ProviderId]
    credential_env_var: ClassVar[str]

    timeout_errors: ClassVar[tuple[type[BaseException], ...]] = (
        asyncio.TimeoutError,
        httpx.TimeoutException,
    )
    connection_errors: ClassVar[tuple[type[BaseException], ...]] = (
        httpx.NetworkError,
    )

    def __init__(
        self,
        api_key: str | None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> None:
        self.timeout = timeout
        self.max_output_tokens = max_output_tokens
        self._client: Any | None = None

        if not api_key:
            logger.warning(
                f"{self.credential_env_var} is not set. "
                f"{self.provider_name} provider will not work."
            )
        else:
            self._client = self._create_client(api_key)

    @property
    def provider_name(self) -> str:
        return self.provider_id.value

    @property
    def has_credential(self) -> bool:
        return self._client is not None

    @abstractmethod
    def _create_client(self, api_key: str) -> Any:
        """Build the SDK client handle"""

    @abstractmethod
    def format_messages(self, messages: Sequence[LlmMessage]) -> Any:
        """Translate canonical messages into the backend's request shape"""

    @abstractmethod
    async def _complete(
        self, backend_model_id: str, messages: Sequence[LlmMessage]
    ) -> LlmResponse:
        """Perform the SDK call and normalize its result"""

    async def generate(
        self, backend_model_id: str, messages: Sequence[LlmMessage]
    ) -> LlmResponse:
        if self._client is None:
            raise ProviderUnavailable(
                self.provider_name, f"{self.credential_env_var} is not configured"
            )

        logger.debug(
            f"Calling {self.provider_name}/{backend_model_id} "
            f"with {len(messages)} messages"
        )
        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self._complete(backend_model_id, messages), timeout=self.timeout
            )
        except RouterError:
            raise
        except self.timeout_errors as e:
            raise GenerationFailed(
                self.provider_name,
                backend_model_id,
                f"request timed out after {self.timeout:.0f}s",
                cause=e,
            ) from e
        except self.connection_errors as e:
            raise ProviderUnavailable(
                self.provider_name,
                f"transport unreachable: {sanitize_for_logging(str(e))}",
                cause=e,
            ) from e
        except Exception as e:
            raise GenerationFailed(
                self.provider_name,
                backend_model_id,
                sanitize_for_logging(str(e)) or type(e).__name__,
                cause=e,
            ) from e

        return dataclasses.replace(
            response,
            provider_id=self.provider_id,
            latency_ms=(time.time() - start_time) * 1000,
        )

    def _malformed(self, backend_model_id: str, reason: str) -> GenerationFailed:
        return GenerationFailed(
            self.provider_name, backend_model_id, f"malformed response: {reason}"
        )


class OpenAIProvider(BaseProvider):
    """OpenAI chat completions. Roles pass through unchanged."""

    provider_id = ProviderId.OPENAI
    credential_env_var = "OPENAI_API_KEY"
    timeout_errors = BaseProvider.timeout_errors + (openai.APITimeoutError,)
    connection_errors = BaseProvider.connection_errors + (openai.APIConnectionError,)

    temperature = 0.7

    def _create_client(self, api_key: str) -> Any:
        return openai.AsyncOpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)

    def format_messages(self, messages: Sequence[LlmMessage]) -> list[dict[str, str]]:
        return [m.to_dict() for m in messages]

    async def _complete(
        self, backend_model_id: str, messages: Sequence[LlmMessage]
    ) -> LlmResponse:
        completion = await self._client.chat.completions.create(
            model=backend_model_id,
            messages=self.format_messages(messages),
            temperature=self.temperature,
        )

        if not completion.choices:
            raise self._malformed(backend_model_id, "no choices returned")

        usage: dict[str, int] = {}
        if completion.usage is not None:
            usage = {
                "input_tokens": completion.usage.prompt_tokens,
                "output_tokens": completion.usage.completion_tokens,
            }

        return LlmResponse(
            content=completion.choices[0].message.content or "",
            backend_model_id=completion.model or backend_model_id,
            usage=usage,
        )


class AnthropicProvider(BaseProvider):
    """Anthropic Messages API.

    System turns go into the top-level ``system`` parameter and consecutive
    turns of the same role are merged, since the API expects alternation.
    """

    provider_id = ProviderId.ANTHROPIC
    credential_env_var = "ANTHROPIC_API_KEY"
    timeout_errors = BaseProvider.timeout_errors + (anthropic.APITimeoutError,)
    connection_errors = BaseProvider.connection_errors + (
        anthropic.APIConnectionError,
    )

    def _create_client(self, api_key: str) -> Any:
        return anthropic.AsyncAnthropic(
            api_key=api_key, timeout=self.timeout, max_retries=0
        )

    def format_messages(
        self, messages: Sequence[LlmMessage]
    ) -> tuple[str, list[dict[str, str]]]:
        system_parts: list[str] = []
        chat_messages: list[dict[str, str]] = []
        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            elif chat_messages and chat_messages[-1]["role"] == msg.role:
                chat_messages[-1]["content"] += "\n\n" + msg.content
            else:
                chat_messages.append({"role": msg.role, "content": msg.content})
        return "\n\n".join(system_parts), chat_messages

    async def _complete(
        self, backend_model_id: str, messages: Sequence[LlmMessage]
    ) -> LlmResponse:
        system, chat_messages = self.format_messages(messages)

        kwargs: dict[str, Any] = {
            "model": backend_model_id,
            "max_tokens": self.max_output_tokens,
            "messages": chat_messages,
        }
        if system:
            kwargs["system"] = system

        response = await self._client.messages.create(**kwargs)

        if not response.content:
            raise self._malformed(backend_model_id, "empty content")

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

        usage: dict[str, int] = {}
        if response.usage is not None:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }

        return LlmResponse(
            content=text,
            backend_model_id=response.model or backend_model_id,
            usage=usage,
        )


class GeminiProvider(BaseProvider):
    """Google Gemini via the google-genai SDK.

    Gemini has no system role in ``contents``: system text is folded into the
    first user turn, and ``assistant`` is renamed ``model``.
    """

    provider_id = ProviderId.GEMINI
    credential_env_var = "GEMINI_API_KEY"

    def _create_client(self, api_key: str) -> Any:
        return genai.Client(
            api_key=api_key,
            http_options=genai_types.HttpOptions(timeout=int(self.timeout * 1000)),
        )

    def format_messages(self, messages: Sequence[LlmMessage]) -> list[dict[str, Any]]:
        system_parts = [m.content for m in messages if m.role == "system"]
        contents: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == "system":
                continue
            role = "model" if msg.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": msg.content}]})

        if system_parts:
            preamble = "\n\n".join(system_parts)
            first_user = next((c for c in contents if c["role"] == "user"), None)
            if first_user is None:
                contents.insert(0, {"role": "user", "parts": [{"text": preamble}]})
            else:
                original = first_user["parts"][0]["text"]
                first_user["parts"][0]["text"] = f"{preamble}\n\n{original}"
        return contents

    async def _complete(
        self, backend_model_id: str, messages: Sequence[LlmMessage]
    ) -> LlmResponse:
        response = await self._client.aio.models.generate_content(
            model=backend_model_id,
            contents=self.format_messages(messages),
        )

        text = response.text
        if text is None:
            raise self._malformed(backend_model_id, "no text candidate")

        usage: dict[str, int] = {}
        metadata = getattr(response, "usage_metadata", None)
        if metadata is not None:
            usage = {
                "input_tokens": metadata.prompt_token_count or 0,
                "output_tokens": metadata.candidates_token_count or 0,
            }

        return LlmResponse(
            content=text,
            backend_model_id=getattr(response, "model_version", None) or backend_model_id,
            usage=usage,
        )


PROVIDER_CLASSES: dict[ProviderId, type[BaseProvider]] = {
    ProviderId.OPENAI: OpenAIProvider,
    ProviderId.ANTHROPIC: AnthropicProvider,
    ProviderId.GEMINI: GeminiProvider,
}
