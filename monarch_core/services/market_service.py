"""Market data orchestration: API first, subgraph fallback, per chain."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, TypeVar

from ..cache import TTLCache
from ..config import AppConfig
from ..graphql import MorphoApiFetcher, SubgraphFetcher
from ..interfaces.market_source import MarketDataSource
from ..models import (
    HistoricalData,
    Market,
    MarketActivityTransaction,
    MarketBorrower,
    MarketLiquidationTransaction,
    MarketPosition,
    MarketSupplier,
    PaginatedResult,
    TimeseriesOptions,
    TransactionFilters,
    UserTransaction,
)
from ..oracles import CoinGeckoOracle
from ..sources.morpho_api import MorphoApiSource
from ..sources.subgraph import SubgraphSource
from ..tokens import TokenRegistry

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Per-chain ceiling when merging user history across chains.
USER_TRANSACTIONS_PER_CHAIN = 1000

# Registry of source factories, in fallback order.
_SOURCE_FACTORIES: dict[str, Callable[[AppConfig, TokenRegistry], MarketDataSource]] = {
    "morpho-api": lambda cfg, registry: MorphoApiSource(
        MorphoApiFetcher(cfg.fetcher),
        cfg.networks,
        registry,
        markets_page_size=cfg.cache.markets_page_size,
    ),
    "subgraph": lambda cfg, registry: SubgraphSource(
        SubgraphFetcher(cfg.fetcher),
        cfg.networks,
        registry,
        CoinGeckoOracle(cfg.prices, timeout=cfg.fetcher.request_timeout),
        positions_cache=TTLCache(cfg.cache.positions_ttl_seconds),
        fetch_limit=cfg.cache.subgraph_fetch_limit,
        blacklisted_tokens=cfg.blacklisted_tokens,
    ),
}


class NoSourceAvailableError(RuntimeError):
    """No configured backend serves the requested chain."""


class RequestGeneration:
    """Generation counter used to discard results of abandoned requests."""

    def __init__(self) -> None:
        self._current = 0

    def begin(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current


class MarketDataService:
    """Unified market queries across all configured networks."""

    def __init__(
        self,
        config: AppConfig,
        sources: list[MarketDataSource] | None = None,
        registry: TokenRegistry | None = None,
    ) -> None:
        self._config = config
        self.registry = registry or TokenRegistry.from_config(config)
        if sources is None:
            sources = [factory(config, self.registry) for factory in _SOURCE_FACTORIES.values()]
        self._sources = sources
        self._generations: dict[str, RequestGeneration] = {}

    @property
    def chain_ids(self) -> list[int]:
        return list(self._config.networks)

    def sources_for(self, chain_id: int) -> list[MarketDataSource]:
        return [s for s in self._sources if s.supports(chain_id)]

    async def _with_fallback(
        self,
        chain_id: int,
        description: str,
        call: Callable[[MarketDataSource], Awaitable[R]],
        accept: Callable[[R], bool] = lambda result: True,
    ) -> R:
        """Try each source for ``chain_id`` in order until one succeeds.

        A source "succeeds" when it returns without raising and ``accept``
        approves the result. The last result is returned if none is
        accepted; the last error is re-raised if every source failed.
        """
        sources = self.sources_for(chain_id)
        if not sources:
            raise NoSourceAvailableError(f"No data source configured for chain {chain_id}")

        last_error: Exception | None = None
        result: Any = None
        have_result = False

        for source in sources:
            try:
                result = await call(source)
                have_result = True
            except RuntimeError as e:
                last_error = e
                logger.warning(
                    "%s via %s failed on chain %d: %s",
                    description,
                    source.source_name,
                    chain_id,
                    e,
                )
                continue
            if accept(result):
                return result
            logger.info(
                "%s via %s returned nothing on chain %d; trying next source",
                description,
                source.source_name,
                chain_id,
            )

        if have_result or last_error is None:
            return result
        raise last_error

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------

    async def fetch_market(self, unique_key: str, chain_id: int) -> Market | None:
        return await self._with_fallback(
            chain_id,
            f"Market {unique_key}",
            lambda s: s.fetch_market(unique_key, chain_id),
            accept=lambda market: market is not None,
        )

    async def fetch_markets(self, chain_id: int) -> list[Market]:
        return await self._with_fallback(
            chain_id, "Markets", lambda s: s.fetch_markets(chain_id)
        )

    async def _fetch_markets_logged(self, chain_id: int) -> list[Market]:
        try:
            return await self.fetch_markets(chain_id)
        except Exception as e:
            logger.error("Failed to fetch markets for chain %d: %s", chain_id, e)
            return []

    async def fetch_all_markets(self, chain_ids: list[int] | None = None) -> list[Market]:
        """Fetch markets on every chain concurrently.

        One chain failing is logged and contributes nothing; the others are
        unaffected.
        """
        chain_ids = chain_ids if chain_ids is not None else self.chain_ids
        results = await asyncio.gather(
            *(self._fetch_markets_logged(chain_id) for chain_id in chain_ids)
        )

        markets: list[Market] = []
        for chain_markets in results:
            markets.extend(
                m
                for m in chain_markets
                if m.unique_key
                and m.loan_asset.address not in ("", "0x")
                and m.collateral_asset.address not in ("", "0x")
                and m.chain_id in self._config.networks
            )
        logger.info("Fetched %d markets across %d chain(s)", len(markets), len(chain_ids))
        return markets

    # ------------------------------------------------------------------
    # Activity and positions
    # ------------------------------------------------------------------

    async def fetch_market_supplies(
        self, unique_key: str, chain_id: int, page_size: int = 10, skip: int = 0
    ) -> PaginatedResult[MarketActivityTransaction]:
        return await self._with_fallback(
            chain_id,
            f"Supplies for {unique_key}",
            lambda s: s.fetch_market_supplies(unique_key, chain_id, page_size, skip),
        )

    async def fetch_market_borrows(
        self, unique_key: str, chain_id: int, page_size: int = 10, skip: int = 0
    ) -> PaginatedResult[MarketActivityTransaction]:
        return await self._with_fallback(
            chain_id,
            f"Borrows for {unique_key}",
            lambda s: s.fetch_market_borrows(unique_key, chain_id, page_size, skip),
        )

    async def fetch_market_liquidations(
        self, unique_key: str, chain_id: int
    ) -> list[MarketLiquidationTransaction]:
        return await self._with_fallback(
            chain_id,
            f"Liquidations for {unique_key}",
            lambda s: s.fetch_market_liquidations(unique_key, chain_id),
        )

    async def fetch_market_suppliers(
        self,
        unique_key: str,
        chain_id: int,
        min_shares: str = "0",
        page_size: int = 10,
        skip: int = 0,
    ) -> PaginatedResult[MarketSupplier]:
        return await self._with_fallback(
            chain_id,
            f"Suppliers for {unique_key}",
            lambda s: s.fetch_market_suppliers(
                unique_key, chain_id, min_shares, page_size, skip
            ),
        )

    async def fetch_market_borrowers(
        self,
        unique_key: str,
        chain_id: int,
        min_shares: str = "0",
        page_size: int = 10,
        skip: int = 0,
    ) -> PaginatedResult[MarketBorrower]:
        return await self._with_fallback(
            chain_id,
            f"Borrowers for {unique_key}",
            lambda s: s.fetch_market_borrowers(
                unique_key, chain_id, min_shares, page_size, skip
            ),
        )

    async def fetch_historical_data(
        self, unique_key: str, chain_id: int, options: TimeseriesOptions
    ) -> HistoricalData | None:
        return await self._with_fallback(
            chain_id,
            f"Historical data for {unique_key}",
            lambda s: s.fetch_historical_data(unique_key, chain_id, options),
            accept=lambda data: data is not None,
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def fetch_user_position(
        self, unique_key: str, user_address: str, chain_id: int
    ) -> MarketPosition | None:
        return await self._with_fallback(
            chain_id,
            f"Position of {user_address} in {unique_key}",
            lambda s: s.fetch_user_position(unique_key, user_address, chain_id),
            accept=lambda position: position is not None,
        )

    async def _user_positions_logged(
        self, user_address: str, chain_id: int
    ) -> list[MarketPosition]:
        try:
            return await self._with_fallback(
                chain_id,
                f"Positions of {user_address}",
                lambda s: s.fetch_user_positions(user_address, chain_id),
            )
        except Exception as e:
            logger.error(
                "Failed to fetch positions of %s on chain %d: %s", user_address, chain_id, e
            )
            return []

    async def fetch_user_positions(
        self, user_address: str, chain_ids: list[int] | None = None
    ) -> list[MarketPosition]:
        """Positions of ``user_address`` on every chain; failing chains add nothing."""
        chain_ids = chain_ids if chain_ids is not None else self.chain_ids
        results = await asyncio.gather(
            *(self._user_positions_logged(user_address, c) for c in chain_ids)
        )
        return [position for chain_positions in results for position in chain_positions]

    async def _user_transactions_logged(
        self, filters: TransactionFilters, chain_id: int
    ) -> PaginatedResult[UserTransaction] | None:
        try:
            return await self._with_fallback(
                chain_id,
                f"Transactions of {filters.user_address}",
                lambda s: s.fetch_user_transactions(filters, chain_id),
            )
        except Exception as e:
            logger.error(
                "Failed to fetch transactions of %s on chain %d: %s",
                filters.user_address,
                chain_id,
                e,
            )
            return None

    async def fetch_user_transactions(
        self, filters: TransactionFilters, chain_ids: list[int] | None = None
    ) -> PaginatedResult[UserTransaction]:
        """Merge a user's history across chains, most recent first.

        Each chain contributes at most ``USER_TRANSACTIONS_PER_CHAIN`` items;
        ``filters.skip`` and ``filters.first`` apply to the merged list. The
        total is the sum of the per-chain totals and is exact only when every
        chain answered with an exact total.
        """
        chain_ids = chain_ids if chain_ids is not None else self.chain_ids
        per_chain = replace(filters, skip=0, first=USER_TRANSACTIONS_PER_CHAIN)
        results = await asyncio.gather(
            *(self._user_transactions_logged(per_chain, c) for c in chain_ids)
        )

        merged: list[UserTransaction] = []
        total = 0
        is_exact = True
        for result in results:
            if result is None:
                is_exact = False
                continue
            merged.extend(result.items)
            total += result.total_count
            is_exact = is_exact and result.is_exact

        merged.sort(key=lambda tx: tx.timestamp, reverse=True)
        skip = max(filters.skip, 0)
        end = None if filters.first is None else skip + max(filters.first, 0)
        return PaginatedResult(
            items=tuple(merged[skip:end]), total_count=total, is_exact=is_exact
        )

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def fetch_for_view(self, view: str, request: Awaitable[R]) -> R | None:
        """Await ``request`` unless a newer request for ``view`` superseded it.

        The superseded request still runs to completion; its result is
        discarded and None is returned.
        """
        generation = self._generations.setdefault(view, RequestGeneration())
        token = generation.begin()
        result = await request
        if not generation.is_current(token):
            logger.debug("Discarding stale result for view %s", view)
            return None
        return result

    def abandon(self, view: str) -> None:
        """Invalidate any request in flight for ``view``."""
        self._generations.setdefault(view, RequestGeneration()).begin()
