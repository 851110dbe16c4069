"""LLM client for cloud providers.

Provides a unified interface for LLM interactions over the
OpenAI-compatible chat completions API.

Supported providers:
- openai: OpenAI API
- anthropic: Anthropic API (via OpenAI-compatible endpoint)
- groq: Groq API (OpenAI-compatible)
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal

import openai
import structlog
from openai import OpenAI

from examadmin.config.app_config import get_provider_config

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

Provider = Literal["openai", "anthropic", "groq"]

# Providers that accept response_format={"type": "json_object"}
JSON_OBJECT_PROVIDERS = ("openai", "groq")

# JSON repair prompt template
JSON_REPAIR_PROMPT = """Fix the following text and return ONLY valid JSON:
<<<
{invalid_output}
>>>

Reply with the corrected JSON only, no explanations or markdown."""

# Some models emit reasoning blocks that interfere with JSON parsing
SANITIZE_PATTERNS = [
    re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<reasoning>.*?</reasoning>", re.DOTALL | re.IGNORECASE),
]


def _sanitize_for_json(text: str) -> str:
    """Remove thinking/reasoning tags before JSON parsing."""
    result = text
    for pattern in SANITIZE_PATTERNS:
        result = pattern.sub("", result)
    return result.strip()


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class LLMConfig:
    """Configuration for LLM client."""

    provider: Provider = "openai"
    base_url: str | None = None
    model: str = "gpt-4o"
    temperature: float = 0.1
    max_tokens: int = 16000
    timeout: int = 300
    api_key: str | None = None

    @classmethod
    def for_provider(cls, provider: Provider, model: str | None = None) -> LLMConfig:
        """Build configuration from the app config's provider entry.

        Raises:
            LLMError: If the provider is not configured
        """
        pconfig = get_provider_config(provider)
        if pconfig is None:
            raise LLMError(f"Provider not configured: {provider}")

        return cls(
            provider=provider,
            base_url=pconfig.base_url,
            model=model or pconfig.default_model,
            api_key=pconfig.get_api_key(),
        )


@dataclass
class Message:
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for API call."""
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Response from LLM."""

    content: str
    model: str
    provider: Provider
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        """Get total token count."""
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Error during LLM interaction."""

    pass


class LLMConnectionError(LLMError):
    """Error connecting to LLM server."""

    pass


class LLMResponseError(LLMError):
    """Error in LLM response."""

    pass


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """Unified client for chat completions across providers."""

    def __init__(self, config: LLMConfig):
        """Initialize LLM client.

        Args:
            config: LLM configuration
        """
        self.config = config
        self._client = OpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key or "not-set",
            timeout=self.config.timeout,
        )

        logger.info(
            "llm_client.initialized",
            provider=self.config.provider,
            model=self.config.model,
        )

    def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send chat completion request.

        Args:
            messages: List of messages in conversation
            temperature: Override default temperature
            max_tokens: Override default max tokens
            json_mode: Request JSON response format (only if provider supports it)

        Returns:
            LLMResponse with content and metadata

        Raises:
            LLMConnectionError: If cannot connect to server
            LLMResponseError: If response is invalid
            LLMError: On any other API failure
        """
        request_kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if json_mode and self.config.provider in JSON_OBJECT_PROVIDERS:
            request_kwargs["response_format"] = {"type": "json_object"}

        start_time = time.time()

        try:
            response = self._client.chat.completions.create(**request_kwargs)
        except openai.APIConnectionError as e:
            raise LLMConnectionError(
                f"Could not connect to {self.config.provider}: {e}"
            ) from e
        except openai.OpenAIError as e:
            raise LLMError(f"LLM call failed: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise LLMResponseError("Empty response from LLM")

        content = response.choices[0].message.content or ""

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.debug(
            "llm_client.response",
            provider=self.config.provider,
            model=response.model,
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=response.model,
            provider=self.config.provider,
            usage=usage,
            latency_ms=latency_ms,
        )

    def _try_parse_json(self, content: str) -> dict[str, Any] | None:
        """Try to parse JSON from content, with multiple extraction strategies.

        Tries:
        1. Direct parse
        2. Extract from ```json ... ``` blocks
        3. Extract first {...} object

        Returns parsed dict or None if all strategies fail.
        """
        content = _sanitize_for_json(content)

        try:
            parsed = json.loads(content)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", content)
        if json_match:
            try:
                parsed = json.loads(json_match.group(1).strip())
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass

        start = content.find("{")
        end = content.rfind("}") + 1
        if start >= 0 and end > start:
            try:
                parsed = json.loads(content[start:end])
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass

        return None

    def chat_json(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_retries: int = 1,
    ) -> dict[str, Any]:
        """Send chat request expecting JSON response.

        Uses robust parsing with retry on failure.

        Raises:
            LLMResponseError: If response is not valid JSON after retries
        """
        response = self.chat(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )

        parsed = self._try_parse_json(response.content)
        if parsed is not None:
            return parsed

        if max_retries > 0:
            logger.warning(
                "llm_client.json_parse_failed_retrying",
                content=response.content[:100],
                provider=self.config.provider,
            )
            repair_prompt = JSON_REPAIR_PROMPT.format(invalid_output=response.content[:1000])
            retry_response = self.chat(
                messages + [Message(role="user", content=repair_prompt)],
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=True,
            )

            parsed = self._try_parse_json(retry_response.content)
            if parsed is not None:
                logger.info("llm_client.json_parse_recovered")
                return parsed

        raise LLMResponseError(f"Could not get valid JSON: {response.content[:200]}...")

    def simple_json(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """Single-turn chat expecting a JSON object back."""
        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_message),
        ]
        return self.chat_json(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
