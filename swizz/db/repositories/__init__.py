"""Repository pattern implementations for data access."""

from swizz.db.repositories.calls import AsyncCallRepository

__all__ = [
    "AsyncCallRepository",
]
