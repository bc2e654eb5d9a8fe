"""GraphQL transport and response errors."""
from __future__ import annotations

from typing import Any


class GraphQLRequestError(RuntimeError):
    """HTTP-level or network failure talking to a GraphQL endpoint."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class GraphQLResponseError(RuntimeError):
    """The endpoint answered with a GraphQL ``errors`` payload."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        first = errors[0] if errors else {}
        message = first.get("message") if isinstance(first, dict) else None
        super().__init__(message or "Unknown GraphQL error")
