"""Market data source protocol: implemented by each backend adapter."""
from typing import Protocol

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


class MarketDataSource(Protocol):
    """Backend-agnostic market queries producing the unified model."""

    @property
    def source_name(self) -> str: ...

    def supports(self, chain_id: int) -> bool: ...

    async def fetch_market(self, unique_key: str, chain_id: int) -> Market | None: ...

    async def fetch_markets(self, chain_id: int) -> list[Market]: ...

    async def fetch_market_supplies(
        self, unique_key: str, chain_id: int, page_size: int = 10, skip: int = 0
    ) -> PaginatedResult[MarketActivityTransaction]: ...

    async def fetch_market_borrows(
        self, unique_key: str, chain_id: int, page_size: int = 10, skip: int = 0
    ) -> PaginatedResult[MarketActivityTransaction]: ...

    async def fetch_market_liquidations(
        self, unique_key: str, chain_id: int
    ) -> list[MarketLiquidationTransaction]: ...

    async def fetch_market_suppliers(
        self,
        unique_key: str,
        chain_id: int,
        min_shares: str = "0",
        page_size: int = 10,
        skip: int = 0,
    ) -> PaginatedResult[MarketSupplier]: ...

    async def fetch_market_borrowers(
        self,
        unique_key: str,
        chain_id: int,
        min_shares: str = "0",
        page_size: int = 10,
        skip: int = 0,
    ) -> PaginatedResult[MarketBorrower]: ...

    async def fetch_historical_data(
        self, unique_key: str, chain_id: int, options: TimeseriesOptions
    ) -> HistoricalData | None: ...

    async def fetch_user_positions(
        self, user_address: str, chain_id: int
    ) -> list[MarketPosition]: ...

    async def fetch_user_position(
        self, unique_key: str, user_address: str, chain_id: int
    ) -> MarketPosition | None: ...

    async def fetch_user_transactions(
        self, filters: TransactionFilters, chain_id: int
    ) -> PaginatedResult[UserTransaction]: ...
