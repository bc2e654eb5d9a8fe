"""Morpho API source: fetches and normalizes markets, activity and vaults."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from ...config import NetworkConfig
from ...graphql import api_queries as q
from ...interfaces.fetcher import GraphQLFetcher
from ...market_warnings import flag_bad_debt, flag_unrecognized_oracle
from ...models import (
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
    VaultV2Details,
)
from ...tokens import TokenRegistry
from ..normalize import by_timestamp_desc
from . import parser

logger = logging.getLogger(__name__)

LIQUIDATIONS_LIMIT = 1000
USER_TRANSACTIONS_LIMIT = 1000
OWNER_VAULTS_PAGE_SIZE = 100


def is_complete_market(market: Market) -> bool:
    return bool(
        market.unique_key
        and market.loan_asset.address not in ("", "0x")
        and market.collateral_asset.address not in ("", "0x")
    )


class MorphoApiSource:
    """Market and vault queries against the Morpho API."""

    def __init__(
        self,
        fetcher: GraphQLFetcher,
        networks: dict[int, NetworkConfig],
        registry: TokenRegistry | None = None,
        markets_page_size: int = 1000,
    ) -> None:
        self._fetcher = fetcher
        self._networks = networks
        self._registry = registry
        self._page_size = markets_page_size

    @property
    def source_name(self) -> str:
        return "morpho-api"

    def supports(self, chain_id: int) -> bool:
        network = self._networks.get(chain_id)
        return network is not None and network.api_supported

    def _finish_market(self, market: Market) -> Market:
        return flag_bad_debt(flag_unrecognized_oracle(market, self._registry))

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------

    async def fetch_market(self, unique_key: str, chain_id: int) -> Market | None:
        data = await self._fetcher.fetch(
            q.MARKET_DETAIL_QUERY, {"uniqueKey": unique_key, "chainId": chain_id}
        )
        raw = (data or {}).get("marketByUniqueKey")
        if not raw:
            logger.info("Market %s not found on chain %d", unique_key, chain_id)
            return None
        return self._finish_market(parser.parse_market(raw, chain_id))

    async def fetch_markets(self, chain_id: int) -> list[Market]:
        """Fetch every market on a chain, following server-side pagination."""
        raw_items: list[dict[str, Any]] = []
        skip = 0

        while True:
            data = await self._fetcher.fetch(
                q.MARKETS_QUERY,
                {
                    "first": self._page_size,
                    "skip": skip,
                    "where": {"chainId_in": [chain_id]},
                },
            )
            items, total, count = parser.parse_markets_page(data)

            if not items or count <= 0:
                if skip < total:
                    logger.warning(
                        "Empty markets page at skip=%d of %d on chain %d; stopping",
                        skip,
                        total,
                        chain_id,
                    )
                break

            raw_items.extend(items)
            skip += count
            if skip >= total:
                break

        markets = [
            self._finish_market(parser.parse_market(raw, chain_id)) for raw in raw_items
        ]
        complete = [m for m in markets if is_complete_market(m)]
        logger.info(
            "Fetched %d markets from Morpho API for chain %d", len(complete), chain_id
        )
        return complete

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    async def _fetch_transfers(
        self, query: str, unique_key: str, chain_id: int, page_size: int, skip: int
    ) -> PaginatedResult[MarketActivityTransaction]:
        data = await self._fetcher.fetch(
            query,
            {
                "uniqueKey": unique_key,
                "chainId": chain_id,
                "first": page_size,
                "skip": skip,
            },
        )
        items, total = parser.parse_transactions_page(data)
        transactions = by_timestamp_desc([parser.parse_activity(i) for i in items])
        return PaginatedResult(items=tuple(transactions), total_count=total)

    async def fetch_market_supplies(
        self, unique_key: str, chain_id: int, page_size: int = 10, skip: int = 0
    ) -> PaginatedResult[MarketActivityTransaction]:
        return await self._fetch_transfers(
            q.MARKET_SUPPLIES_QUERY, unique_key, chain_id, page_size, skip
        )

    async def fetch_market_borrows(
        self, unique_key: str, chain_id: int, page_size: int = 10, skip: int = 0
    ) -> PaginatedResult[MarketActivityTransaction]:
        return await self._fetch_transfers(
            q.MARKET_BORROWS_QUERY, unique_key, chain_id, page_size, skip
        )

    async def fetch_market_liquidations(
        self, unique_key: str, chain_id: int
    ) -> list[MarketLiquidationTransaction]:
        data = await self._fetcher.fetch(
            q.MARKET_LIQUIDATIONS_QUERY,
            {
                "uniqueKey": unique_key,
                "chainId": chain_id,
                "first": LIQUIDATIONS_LIMIT,
                "skip": 0,
            },
        )
        items, _ = parser.parse_transactions_page(data)
        return by_timestamp_desc([parser.parse_liquidation(i) for i in items])

    async def fetch_market_suppliers(
        self,
        unique_key: str,
        chain_id: int,
        min_shares: str = "0",
        page_size: int = 10,
        skip: int = 0,
    ) -> PaginatedResult[MarketSupplier]:
        data = await self._fetcher.fetch(
            q.MARKET_SUPPLIERS_QUERY,
            {
                "uniqueKey": unique_key,
                "chainId": chain_id,
                "minShares": min_shares,
                "first": page_size,
                "skip": skip,
            },
        )
        items, total = parser.parse_transactions_page(data, key="marketPositions")
        return PaginatedResult(
            items=tuple(parser.parse_supplier(i) for i in items), total_count=total
        )

    async def fetch_market_borrowers(
        self,
        unique_key: str,
        chain_id: int,
        min_shares: str = "0",
        page_size: int = 10,
        skip: int = 0,
    ) -> PaginatedResult[MarketBorrower]:
        data = await self._fetcher.fetch(
            q.MARKET_BORROWERS_QUERY,
            {
                "uniqueKey": unique_key,
                "chainId": chain_id,
                "minShares": min_shares,
                "first": page_size,
                "skip": skip,
            },
        )
        items, total = parser.parse_transactions_page(data, key="marketPositions")
        return PaginatedResult(
            items=tuple(parser.parse_borrower(i) for i in items), total_count=total
        )

    async def fetch_historical_data(
        self, unique_key: str, chain_id: int, options: TimeseriesOptions
    ) -> HistoricalData | None:
        try:
            data = await self._fetcher.fetch(
                q.MARKET_HISTORICAL_QUERY,
                {
                    "uniqueKey": unique_key,
                    "chainId": chain_id,
                    "options": {
                        "startTimestamp": options.start_timestamp,
                        "endTimestamp": options.end_timestamp,
                        "interval": options.interval,
                    },
                },
            )
        except RuntimeError as e:
            logger.error("Error fetching Morpho historical data for %s: %s", unique_key, e)
            return None

        result = parser.parse_historical(data)
        if result is None:
            logger.warning("Historical state missing in Morpho API for %s", unique_key)
        return result

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def _position(self, raw: dict[str, Any], chain_id: int) -> MarketPosition | None:
        market = self._finish_market(parser.parse_market(raw.get("market") or {}, chain_id))
        if not is_complete_market(market):
            return None
        state = parser.parse_position_state(raw.get("state"))
        if state.is_empty:
            return None
        return MarketPosition(market=market, state=state)

    async def fetch_user_positions(
        self, user_address: str, chain_id: int
    ) -> list[MarketPosition]:
        """Non-empty positions of ``user_address`` on one chain."""
        data = await self._fetcher.fetch(
            q.USER_POSITIONS_QUERY, {"address": user_address, "chainId": chain_id}
        )
        user = (data or {}).get("userByAddress")
        if not user:
            logger.info("User %s unknown to Morpho API on chain %d", user_address, chain_id)
            return []

        positions = [
            self._position(raw, chain_id) for raw in user.get("marketPositions") or []
        ]
        return [p for p in positions if p is not None]

    async def fetch_user_position(
        self, unique_key: str, user_address: str, chain_id: int
    ) -> MarketPosition | None:
        data = await self._fetcher.fetch(
            q.USER_POSITION_FOR_MARKET_QUERY,
            {"address": user_address, "chainId": chain_id, "marketKey": unique_key},
        )
        raw = (data or {}).get("marketPosition")
        if not raw:
            return None
        return self._position(raw, chain_id)

    async def fetch_user_transactions(
        self, filters: TransactionFilters, chain_id: int
    ) -> PaginatedResult[UserTransaction]:
        where: dict[str, Any] = {
            "userAddress_in": [filters.user_address],
            "chainId_in": [chain_id],
        }
        if filters.market_unique_keys:
            where["marketUniqueKey_in"] = list(filters.market_unique_keys)
        if filters.timestamp_gte is not None:
            where["timestamp_gte"] = filters.timestamp_gte
        if filters.timestamp_lte is not None:
            where["timestamp_lte"] = filters.timestamp_lte

        data = await self._fetcher.fetch(
            q.USER_TRANSACTIONS_QUERY,
            {
                "where": where,
                "first": filters.first or USER_TRANSACTIONS_LIMIT,
                "skip": filters.skip,
            },
        )
        items, total = parser.parse_transactions_page(data)
        transactions = by_timestamp_desc(
            [parser.parse_user_transaction(i, chain_id) for i in items]
        )
        return PaginatedResult(items=tuple(transactions), total_count=total)

    # ------------------------------------------------------------------
    # Vaults
    # ------------------------------------------------------------------

    async def fetch_vault_details(
        self, vault_address: str, chain_id: int
    ) -> VaultV2Details | None:
        data = await self._fetcher.fetch(
            q.VAULT_V2_QUERY, {"address": vault_address, "chainId": chain_id}
        )
        raw = (data or {}).get("vaultV2ByAddress")
        if not raw:
            logger.info("Vault %s not found on chain %d", vault_address, chain_id)
            return None
        return parser.parse_vault(raw, chain_id)

    async def fetch_vault_details_many(
        self, vault_addresses: list[str], chain_id: int
    ) -> list[VaultV2Details]:
        """Fetch several vaults concurrently; individual failures are dropped."""
        if not vault_addresses:
            return []

        results = await asyncio.gather(
            *(self.fetch_vault_details(a, chain_id) for a in vault_addresses),
            return_exceptions=True,
        )

        vaults: list[VaultV2Details] = []
        for address, result in zip(vault_addresses, results):
            if isinstance(result, BaseException):
                logger.error("Error fetching vault %s: %s", address, result)
            elif result is not None:
                vaults.append(result)
        return vaults

    async def fetch_owner_vault_addresses(
        self, owner: str, chain_ids: list[int]
    ) -> list[tuple[str, int]]:
        """List ``(vault_address, chain_id)`` for V2 vaults owned by ``owner``."""
        wanted = set(chain_ids)
        normalized_owner = owner.lower()
        found: list[tuple[str, int]] = []
        skip = 0

        try:
            while True:
                data = await self._fetcher.fetch(
                    q.VAULT_V2_OWNERS_QUERY,
                    {"first": OWNER_VAULTS_PAGE_SIZE, "skip": skip},
                )
                block = (data or {}).get("vaultV2s")
                if not block:
                    break

                items = block.get("items") or []
                for vault in items:
                    chain_id = (vault.get("chain") or {}).get("id")
                    vault_owner = ((vault.get("owner") or {}).get("address") or "").lower()
                    if chain_id in wanted and vault_owner == normalized_owner:
                        found.append((vault.get("address") or "", int(chain_id)))

                total = int((block.get("pageInfo") or {}).get("countTotal") or 0)
                skip += OWNER_VAULTS_PAGE_SIZE
                if skip >= total or len(items) != OWNER_VAULTS_PAGE_SIZE:
                    break
        except RuntimeError as e:
            logger.error("Error fetching V2 vaults for owner %s: %s", owner, e)

        return found
