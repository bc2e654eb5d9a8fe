"""GraphQL fetchers for the Morpho API and for subgraphs.

Both POST ``{query, variables}`` as JSON and return the ``data`` mapping.
They differ only in error policy:

* :class:`MorphoApiFetcher` treats ``NOT_FOUND`` errors as transient. When
  the response still carries data it is returned as-is; otherwise the
  request is retried with a linear backoff and, once retries run out,
  ``None`` is returned so callers can treat it as absence.
* :class:`SubgraphFetcher` never retries and raises on the first error.
"""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..config import FetcherConfig
from .errors import GraphQLRequestError, GraphQLResponseError

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"


async def post_graphql(
    url: str,
    query: str,
    variables: dict[str, Any] | None,
    timeout: int,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """POST a GraphQL request and return the decoded JSON body."""
    payload = {"query": query, "variables": variables or {}}
    ssl_context = ssl.create_default_context(cafile=certifi.where())

    try:
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(
                url,
                json=payload,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status < 200 or response.status >= 300:
                    raise GraphQLRequestError(
                        f"Network response was not ok: HTTP {response.status}",
                        status=response.status,
                    )
                body = await response.json()
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        raise GraphQLRequestError(f"Request to {url} failed: {e}") from e

    if not isinstance(body, dict):
        raise GraphQLRequestError(f"Unexpected response body from {url}")
    return body


def _is_not_found(errors: list[dict[str, Any]]) -> bool:
    for error in errors:
        status = error.get("status") if isinstance(error, dict) else None
        if status and NOT_FOUND in str(status):
            return True
    return False


class MorphoApiFetcher:
    """Morpho API client with NOT_FOUND retry semantics."""

    def __init__(self, config: FetcherConfig) -> None:
        self.url = config.api_url
        self.max_retries = config.max_retries
        self.retry_delay_ms = config.retry_delay_ms
        self.timeout = config.request_timeout

    async def fetch(
        self, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        for attempt in range(1, self.max_retries + 1):
            body = await post_graphql(
                self.url,
                query,
                variables,
                self.timeout,
                headers={"Cache-Control": "no-cache"},
            )
            errors = body.get("errors") or []
            data = body.get("data")

            if not errors:
                return data

            if not _is_not_found(errors):
                raise GraphQLResponseError(errors)

            if data is not None:
                logger.warning(
                    "Morpho API returned NOT_FOUND alongside data; using data: %s",
                    errors[0].get("message", ""),
                )
                return data

            if attempt < self.max_retries:
                delay = self.retry_delay_ms * attempt / 1000
                logger.info(
                    "Morpho API NOT_FOUND (attempt %d/%d), retrying in %.1fs",
                    attempt,
                    self.max_retries,
                    delay,
                )
                await asyncio.sleep(delay)

        logger.warning(
            "Morpho API NOT_FOUND after %d attempts; treating as absent",
            self.max_retries,
        )
        return None


class SubgraphFetcher:
    """Subgraph client: no retries, any error raises."""

    def __init__(self, config: FetcherConfig) -> None:
        self.timeout = config.request_timeout

    async def fetch(
        self, url: str, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        body = await post_graphql(url, query, variables, self.timeout)
        errors = body.get("errors") or []
        if errors:
            logger.error("Subgraph error from %s: %s", url, errors[0])
            raise GraphQLResponseError(errors)
        return body.get("data") or {}
