"""Groq LLM service implementation."""

from __future__ import annotations

import time
from typing import Any

import groq
from groq import AsyncGroq

from swizz.config import Settings
from swizz.logging_config import get_logger
from swizz.services.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
)
from swizz.services.llm.protocol import Message, ReplyMetadata

logger: Any = get_logger(__name__)


class GroqService:
    """Groq chat completions for the agent's spoken replies."""

    def __init__(self, settings: Settings, model: str | None = None) -> None:
        self._settings = settings
        self._model = model or settings.groq_model
        self._client: AsyncGroq | None = None

    @property
    def client(self) -> AsyncGroq:
        """Lazy initialization of AsyncGroq client."""
        if self._client is None:
            self._client = AsyncGroq(
                api_key=self._settings.groq_api_key.get_secret_value(),
                timeout=self._settings.llm_timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def generate_reply(
        self,
        messages: list[Message],
        *,
        max_tokens: int = 150,
        temperature: float = 0.7,
    ) -> tuple[str, ReplyMetadata]:
        """Generate a single reply for the current history.

        Args:
            messages: Conversation history, system instruction first
            max_tokens: Maximum response tokens (keep low for voice)
            temperature: Response creativity

        Returns:
            Tuple of (reply text, metadata)

        Raises:
            LLMRateLimitError: When rate limit exceeded
            LLMConnectionError: When API unreachable
            LLMAuthenticationError: When API key invalid
            LLMServiceError: For other API errors or an empty reply
        """
        api_messages = self._format_messages(messages)
        metadata = ReplyMetadata(model=self._model)
        start_time = time.perf_counter()

        try:
            response = await self.client.chat.completions.create(
                messages=api_messages,  # type: ignore[arg-type]
                model=self._model,
                temperature=temperature,
                max_tokens=max_tokens,
            )

        except groq.RateLimitError as e:
            logger.warning(f"Groq rate limit hit: {e}")
            raise LLMRateLimitError(
                "Rate limit exceeded",
                retry_after=self._extract_retry_after(e),
            ) from e

        except groq.APIConnectionError as e:
            logger.error(f"Groq connection error: {e.__cause__}")
            raise LLMConnectionError("Failed to connect to Groq API") from e

        except groq.AuthenticationError as e:
            logger.error("Groq authentication failed")
            raise LLMAuthenticationError("Invalid Groq API key") from e

        except groq.APIStatusError as e:
            logger.error(f"Groq API error: {e.status_code} - {e.message}")
            raise LLMServiceError(f"Groq API error: {e.status_code}") from e

        metadata.latency_ms = (time.perf_counter() - start_time) * 1000

        if not response.choices:
            raise LLMServiceError("Groq returned no choices")

        choice = response.choices[0]
        content = (choice.message.content or "").strip()
        if not content:
            raise LLMServiceError("Empty reply from Groq")

        metadata.finish_reason = choice.finish_reason
        if response.usage:
            metadata.prompt_tokens = response.usage.prompt_tokens
            metadata.completion_tokens = response.usage.completion_tokens
            metadata.total_tokens = response.usage.total_tokens

        logger.debug(f"Groq reply in {metadata.latency_ms:.1f}ms ({metadata.finish_reason})")
        return content, metadata

    def _format_messages(self, messages: list[Message]) -> list[dict]:
        """Format messages for Groq API."""
        return [{"role": msg.role.value, "content": msg.content} for msg in messages]

    def _extract_retry_after(self, error: groq.RateLimitError) -> float:
        """Extract retry-after from rate limit error."""
        if hasattr(error, "response") and error.response:
            retry_after = error.response.headers.get("retry-after")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass
        return 60.0

    async def health_check(self) -> bool:
        """Check if Groq API is reachable."""
        try:
            response = await self.client.chat.completions.create(
                messages=[{"role": "user", "content": "hi"}],
                model=self._model,
                max_tokens=1,
            )
            return bool(response.choices)
        except Exception as e:
            logger.warning(f"Groq health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the client connection."""
        if self._client:
            await self._client.close()
            self._client = None
