"""Typed store exceptions.

Infrastructure failures in the Scene Store (SQLite connection, query, or a
stored row that cannot be decoded) raise one of the classes below with a
:class:`StoreOperationContext` describing what was attempted.  "Scene not
found" is a domain outcome and is raised as
:class:`~chronicle_server.game.errors.SessionNotFound` instead.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class StoreOperationContext:
    """Structured operation metadata carried by store exceptions.

    Attributes:
        operation: Stable operation identifier (for example ``"scenes.save"``).
        details: Optional human-readable context for logs and debugging.
    """

    operation: str
    details: str | None = None


class StoreError(RuntimeError):
    """Base exception for store failures."""


class StoreOperationError(StoreError):
    """A store operation failed.

    Args:
        context: Structured operation metadata.
        cause: Optional underlying exception.
    """

    def __init__(self, *, context: StoreOperationContext, cause: Exception | None = None) -> None:
        message = context.operation
        if context.details:
            message = f"{message}: {context.details}"
        super().__init__(message)
        self.context = context
        self.cause = cause


class StoreReadError(StoreOperationError):
    """Read/query or decode failure."""


class StoreWriteError(StoreOperationError):
    """Write/transaction failure."""
