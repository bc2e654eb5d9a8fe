"""Subgraph source: Morpho Blue data from per-chain subgraphs.

Subgraph list queries are capped at ``fetch_limit`` entities and have no
usable server-side pagination for activity and positions, so this source
fetches up to the cap once and slices pages client-side. Every paginated
result it returns has ``is_exact=False``: the total is a lower bound.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from ...cache import TTLCache, paginate
from ...config import NetworkConfig
from ...graphql import subgraph_queries as q
from ...interfaces.fetcher import SubgraphFetcherProtocol
from ...interfaces.price_oracle import PriceOracle
from ...market_warnings import flag_unrecognized_oracle
from ...models import (
    MARKET_BORROW,
    MARKET_REPAY,
    MARKET_SUPPLY,
    MARKET_WITHDRAW,
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
from ...tokens import TokenRegistry
from . import parser

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class SubgraphSource:
    """Market queries against the Morpho Blue subgraph of each chain."""

    def __init__(
        self,
        fetcher: SubgraphFetcherProtocol,
        networks: dict[int, NetworkConfig],
        registry: TokenRegistry,
        oracle: PriceOracle,
        positions_cache: TTLCache[list[Any]] | None = None,
        fetch_limit: int = 1000,
        blacklisted_tokens: tuple[str, ...] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetcher = fetcher
        self._networks = networks
        self._registry = registry
        self._oracle = oracle
        self._positions_cache: TTLCache[list[Any]] = (
            positions_cache if positions_cache is not None else TTLCache(120.0)
        )
        self._fetch_limit = fetch_limit
        self._blacklist = tuple(blacklisted_tokens)
        self._clock = clock

    @property
    def source_name(self) -> str:
        return "subgraph"

    def supports(self, chain_id: int) -> bool:
        return bool(self._subgraph_url(chain_id))

    def _subgraph_url(self, chain_id: int) -> str:
        network = self._networks.get(chain_id)
        return network.subgraph_url if network else ""

    def _require_url(self, chain_id: int) -> str:
        url = self._subgraph_url(chain_id)
        if not url:
            logger.warning("No subgraph URL configured for chain %d", chain_id)
        return url

    def _finish_market(
        self, raw: dict[str, Any], chain_id: int, major_prices: dict[str, float]
    ) -> Market:
        market = parser.transform_market(raw, chain_id, self._registry, major_prices)
        return flag_unrecognized_oracle(market, self._registry)

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------

    async def fetch_market(self, unique_key: str, chain_id: int) -> Market | None:
        url = self._require_url(chain_id)
        if not url:
            return None

        try:
            data = await self._fetcher.fetch(url, q.MARKET_QUERY, {"id": unique_key.lower()})
        except RuntimeError as e:
            logger.error(
                "Error fetching subgraph market %s on chain %d: %s", unique_key, chain_id, e
            )
            return None

        raw = data.get("market")
        if not raw:
            logger.warning("Market %s not found in subgraph for chain %d", unique_key, chain_id)
            return None

        major_prices = await self._oracle.fetch_major_prices()
        return self._finish_market(raw, chain_id, major_prices)

    async def fetch_markets(self, chain_id: int) -> list[Market]:
        url = self._require_url(chain_id)
        if not url:
            return []

        variables = {
            "first": self._fetch_limit,
            "where": {"inputToken_not_in": [*self._blacklist, ZERO_ADDRESS]},
        }
        data = await self._fetcher.fetch(url, q.MARKETS_QUERY, variables)
        raw_markets = data.get("markets")
        if not isinstance(raw_markets, list):
            logger.warning("No markets in subgraph response for chain %d", chain_id)
            return []

        major_prices = await self._oracle.fetch_major_prices()
        markets = [self._finish_market(raw, chain_id, major_prices) for raw in raw_markets]
        logger.info("Fetched %d markets from subgraph for chain %d", len(markets), chain_id)
        return markets

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    async def _loan_asset_id(self, url: str, unique_key: str) -> str | None:
        data = await self._fetcher.fetch(
            url, q.MARKET_LOAN_ASSET_QUERY, {"id": unique_key.lower()}
        )
        token = ((data.get("market") or {}).get("borrowedToken") or {}).get("id")
        return token or None

    async def _fetch_transfers(
        self,
        query: str,
        keys: tuple[str, str],
        types: tuple[str, str],
        unique_key: str,
        chain_id: int,
        page_size: int,
        skip: int,
        loan_asset_id: str | None,
    ) -> PaginatedResult[MarketActivityTransaction]:
        url = self._require_url(chain_id)
        if not url:
            return PaginatedResult(is_exact=False)

        loan_asset_id = loan_asset_id or await self._loan_asset_id(url, unique_key)
        if not loan_asset_id:
            logger.warning("Market %s not found in subgraph for chain %d", unique_key, chain_id)
            return PaginatedResult(is_exact=False)

        data = await self._fetcher.fetch(
            url,
            query,
            {
                "marketId": unique_key.lower(),
                "loanAssetId": loan_asset_id.lower(),
                "first": self._fetch_limit,
            },
        )
        merged = parser.merge_activity(data.get(keys[0]), types[0], data.get(keys[1]), types[1])
        return paginate(merged, skip, page_size, is_exact=False)

    async def fetch_market_supplies(
        self,
        unique_key: str,
        chain_id: int,
        page_size: int = 10,
        skip: int = 0,
        loan_asset_id: str | None = None,
    ) -> PaginatedResult[MarketActivityTransaction]:
        return await self._fetch_transfers(
            q.MARKET_DEPOSITS_WITHDRAWS_QUERY,
            ("deposits", "withdraws"),
            (MARKET_SUPPLY, MARKET_WITHDRAW),
            unique_key,
            chain_id,
            page_size,
            skip,
            loan_asset_id,
        )

    async def fetch_market_borrows(
        self,
        unique_key: str,
        chain_id: int,
        page_size: int = 10,
        skip: int = 0,
        loan_asset_id: str | None = None,
    ) -> PaginatedResult[MarketActivityTransaction]:
        return await self._fetch_transfers(
            q.MARKET_BORROWS_REPAYS_QUERY,
            ("borrows", "repays"),
            (MARKET_BORROW, MARKET_REPAY),
            unique_key,
            chain_id,
            page_size,
            skip,
            loan_asset_id,
        )

    async def fetch_market_liquidations(
        self, unique_key: str, chain_id: int
    ) -> list[MarketLiquidationTransaction]:
        url = self._require_url(chain_id)
        if not url:
            return []
        data = await self._fetcher.fetch(
            url,
            q.MARKET_LIQUIDATIONS_QUERY,
            {"marketId": unique_key.lower(), "first": self._fetch_limit},
        )
        return parser.merge_liquidations(
            data.get("liquidates"), data.get("badDebtRealizations")
        )

    # ------------------------------------------------------------------
    # Positions (cached, sliced client-side)
    # ------------------------------------------------------------------

    async def _cached_positions(
        self, kind: str, query: str, mapper: Any, unique_key: str, chain_id: int, min_shares: str
    ) -> list[Any]:
        cache_key = (kind, chain_id, unique_key.lower(), min_shares)
        cached = self._positions_cache.get(cache_key)
        if cached is not None:
            logger.debug("Using cached %s for %s (%d items)", kind, unique_key, len(cached))
            return cached

        url = self._require_url(chain_id)
        if not url:
            return []

        data = await self._fetcher.fetch(
            url,
            query,
            {
                "market": unique_key.lower(),
                "minShares": min_shares,
                "first": self._fetch_limit,
                "skip": 0,
            },
        )
        items = mapper(data)
        self._positions_cache.set(cache_key, items)
        logger.info("Fetched and cached %d %s for %s", len(items), kind, unique_key)
        return items

    async def fetch_market_suppliers(
        self,
        unique_key: str,
        chain_id: int,
        min_shares: str = "0",
        page_size: int = 10,
        skip: int = 0,
    ) -> PaginatedResult[MarketSupplier]:
        items = await self._cached_positions(
            "suppliers",
            q.MARKET_SUPPLIERS_QUERY,
            parser.map_suppliers,
            unique_key,
            chain_id,
            min_shares,
        )
        return paginate(items, skip, page_size, is_exact=False)

    async def fetch_market_borrowers(
        self,
        unique_key: str,
        chain_id: int,
        min_shares: str = "0",
        page_size: int = 10,
        skip: int = 0,
    ) -> PaginatedResult[MarketBorrower]:
        items = await self._cached_positions(
            "borrowers",
            q.MARKET_BORROWERS_QUERY,
            parser.map_borrowers,
            unique_key,
            chain_id,
            min_shares,
        )
        return paginate(items, skip, page_size, is_exact=False)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def fetch_user_position_markets(
        self, user_address: str, chain_id: int
    ) -> list[str]:
        """Ids of markets where ``user_address`` holds a non-zero position."""
        url = self._require_url(chain_id)
        if not url:
            return []
        data = await self._fetcher.fetch(
            url,
            q.USER_POSITION_MARKETS_QUERY,
            {"userId": user_address.lower(), "first": self._fetch_limit},
        )
        return parser.position_market_ids(data)

    async def fetch_user_position(
        self, unique_key: str, user_address: str, chain_id: int
    ) -> MarketPosition | None:
        """Rebuild one position from the market and the user's per-side entries."""
        market = await self.fetch_market(unique_key, chain_id)
        if market is None:
            return None

        try:
            data = await self._fetcher.fetch(
                self._require_url(chain_id),
                q.USER_MARKET_POSITION_QUERY,
                {"marketId": unique_key.lower(), "userId": user_address.lower()},
            )
        except RuntimeError as e:
            logger.error(
                "Error fetching subgraph position of %s in %s: %s", user_address, unique_key, e
            )
            return None

        state = parser.build_position_state(data.get("positions"), market)
        if state.is_empty:
            return None
        return MarketPosition(market=market, state=state)

    async def fetch_user_positions(
        self, user_address: str, chain_id: int
    ) -> list[MarketPosition]:
        market_ids = await self.fetch_user_position_markets(user_address, chain_id)
        positions = await asyncio.gather(
            *(self.fetch_user_position(m, user_address, chain_id) for m in market_ids)
        )
        return [p for p in positions if p is not None]

    async def fetch_user_transactions(
        self, filters: TransactionFilters, chain_id: int
    ) -> PaginatedResult[UserTransaction]:
        """Fetch up to the entity cap once, then filter and slice client-side."""
        url = self._require_url(chain_id)
        if not url:
            return PaginatedResult(is_exact=False)

        timestamp_lte = filters.timestamp_lte
        if timestamp_lte is None:
            timestamp_lte = int(self._clock())
        data = await self._fetcher.fetch(
            url,
            q.USER_TRANSACTIONS_QUERY,
            {
                "userId": filters.user_address.lower(),
                "first": self._fetch_limit,
                "timestampGte": str(filters.timestamp_gte or 0),
                "timestampLte": str(timestamp_lte),
            },
        )
        transactions = [
            tx
            for tx in parser.transform_user_transactions(data.get("account"), chain_id)
            if filters.matches_market(tx.market_unique_key)
        ]
        page_size = filters.first if filters.first is not None else len(transactions)
        return paginate(transactions, filters.skip, page_size, is_exact=False)

    # ------------------------------------------------------------------
    # Historical
    # ------------------------------------------------------------------

    async def fetch_historical_data(
        self, unique_key: str, chain_id: int, options: TimeseriesOptions
    ) -> HistoricalData | None:
        if not options.start_timestamp or not options.end_timestamp:
            logger.warning("Subgraph historical data requires start and end timestamps")
            return None

        url = self._require_url(chain_id)
        if not url:
            return None

        try:
            data = await self._fetcher.fetch(
                url,
                q.MARKET_HOURLY_SNAPSHOTS_QUERY,
                {
                    "marketId": unique_key.lower(),
                    "startTimestamp": str(options.start_timestamp),
                    "endTimestamp": str(options.end_timestamp),
                },
            )
        except RuntimeError as e:
            logger.error("Error fetching subgraph historical data for %s: %s", unique_key, e)
            return None

        result = parser.parse_hourly_snapshots(data.get("marketHourlySnapshots"))
        if result is None:
            logger.warning("No subgraph historical snapshots for market %s", unique_key)
        return result
