"""LLM services (Groq)."""

from swizz.services.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
)
from swizz.services.llm.groq import GroqService
from swizz.services.llm.protocol import LLMService, Message, ReplyMetadata, Role

__all__ = [
    # Protocol and types
    "LLMService",
    "Message",
    "ReplyMetadata",
    "Role",
    # Implementation
    "GroqService",
    # Exceptions
    "LLMServiceError",
    "LLMRateLimitError",
    "LLMConnectionError",
    "LLMAuthenticationError",
]
