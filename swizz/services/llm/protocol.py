"""LLM service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol


class Role(str, Enum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    """A single turn in conversation history."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class ReplyMetadata:
    """Metadata returned alongside a generated reply."""

    model: str = ""
    latency_ms: float | None = None
    total_tokens: int | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    finish_reason: str | None = None


class LLMService(Protocol):
    """Protocol for LLM service implementations."""

    async def generate_reply(
        self,
        messages: list[Message],
        *,
        max_tokens: int = 150,
        temperature: float = 0.7,
    ) -> tuple[str, ReplyMetadata]:
        """Generate the agent's next line from the full history.

        The history already starts with the system instruction.

        Returns:
            Tuple of (reply text, metadata).
        """
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...
