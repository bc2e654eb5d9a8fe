"""GraphQL fetcher protocols: one per backend."""
from typing import Any, Protocol


class GraphQLFetcher(Protocol):
    """Morpho API fetcher: returns ``data`` or None when not found."""

    async def fetch(
        self, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any] | None: ...


class SubgraphFetcherProtocol(Protocol):
    """Subgraph fetcher: returns ``data`` or raises."""

    async def fetch(
        self, url: str, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]: ...
