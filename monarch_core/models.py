"""Data models: all frozen (immutable).

Token amounts, shares and on-chain integers are carried as decimal strings
exactly as the backends return them; floats are reserved for USD values,
rates and ratios.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class TokenInfo:
    """ERC-20 metadata as seen by a backend."""

    address: str
    symbol: str = "Unknown"
    decimals: int = 18
    name: str = ""


@dataclass(frozen=True)
class MarketWarning:
    type: str
    level: str
    typename: str = ""


@dataclass(frozen=True)
class MarketState:
    supply_assets: str = "0"
    borrow_assets: str = "0"
    supply_shares: str = "0"
    borrow_shares: str = "0"
    liquidity_assets: str = "0"
    collateral_assets: str = "0"
    supply_assets_usd: float = 0.0
    borrow_assets_usd: float = 0.0
    liquidity_assets_usd: float = 0.0
    collateral_assets_usd: float = 0.0
    utilization: float = 0.0
    supply_apy: float = 0.0
    borrow_apy: float = 0.0
    fee: float = 0.0
    timestamp: int = 0
    rate_at_target: str = "0"


@dataclass(frozen=True)
class MarketParams:
    """The five-tuple that identifies a Morpho Blue market on-chain."""

    loan_token: str
    collateral_token: str
    oracle: str
    irm: str
    lltv: int


@dataclass(frozen=True)
class Market:
    """A lending market, identical in shape whichever backend produced it."""

    unique_key: str
    chain_id: int
    loan_asset: TokenInfo
    collateral_asset: TokenInfo
    oracle_address: str = "0x"
    irm_address: str = "0x"
    lltv: str = "0"
    state: MarketState = field(default_factory=MarketState)
    whitelisted: bool = True
    warnings: tuple[MarketWarning, ...] = ()
    has_usd_price: bool = True
    realized_bad_debt: str = "0"
    morpho_address: str = "0x"

    @property
    def market_params(self) -> MarketParams:
        return MarketParams(
            loan_token=self.loan_asset.address,
            collateral_token=self.collateral_asset.address,
            oracle=self.oracle_address,
            irm=self.irm_address,
            lltv=int(self.lltv or 0),
        )

    def with_warnings(self, *warnings: MarketWarning) -> Market:
        """Return a copy with extra warnings appended (duplicates skipped)."""
        known = {w.type for w in self.warnings}
        extra = tuple(w for w in warnings if w.type not in known)
        return replace(self, warnings=self.warnings + extra)


# ---------------------------------------------------------------------------
# Market activity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarketSupplier:
    user_address: str
    supply_shares: str = "0"
    supply_assets: str = "0"


@dataclass(frozen=True)
class MarketBorrower:
    user_address: str
    borrow_assets: str = "0"
    collateral: str = "0"


@dataclass(frozen=True)
class MarketActivityTransaction:
    """Supply/withdraw or borrow/repay event."""

    type: str
    hash: str
    timestamp: int
    amount: str
    user_address: str


@dataclass(frozen=True)
class MarketLiquidationTransaction:
    type: str
    hash: str
    timestamp: int
    liquidator: str
    repaid_assets: str = "0"
    seized_assets: str = "0"
    bad_debt_assets: str = "0"


@dataclass(frozen=True)
class PaginatedResult(Generic[T]):
    """One page of a list query.

    ``is_exact`` is False when ``total_count`` is only a lower bound, which
    is the case for anything sliced out of a capped subgraph fetch.
    """

    items: tuple[T, ...] = ()
    total_count: int = 0
    is_exact: bool = True


# ---------------------------------------------------------------------------
# User positions and history
# ---------------------------------------------------------------------------

MARKET_SUPPLY = "MarketSupply"
MARKET_SUPPLY_COLLATERAL = "MarketSupplyCollateral"
MARKET_WITHDRAW = "MarketWithdraw"
MARKET_WITHDRAW_COLLATERAL = "MarketWithdrawCollateral"
MARKET_BORROW = "MarketBorrow"
MARKET_REPAY = "MarketRepay"
MARKET_LIQUIDATION = "MarketLiquidation"


@dataclass(frozen=True)
class MarketPositionState:
    supply_shares: str = "0"
    supply_assets: str = "0"
    borrow_shares: str = "0"
    borrow_assets: str = "0"
    collateral: str = "0"

    @property
    def is_empty(self) -> bool:
        """True when nothing is supplied, borrowed or posted as collateral."""
        return all(
            int(value or 0) == 0
            for value in (self.supply_assets, self.borrow_assets, self.collateral)
        )


@dataclass(frozen=True)
class MarketPosition:
    """One user's balances in one market, with the market they belong to."""

    market: Market
    state: MarketPositionState = field(default_factory=MarketPositionState)


@dataclass(frozen=True)
class UserTransaction:
    hash: str
    timestamp: int
    type: str
    market_unique_key: str
    chain_id: int
    shares: str = "0"
    assets: str = "0"


@dataclass(frozen=True)
class TransactionFilters:
    """Query for one user's history.

    An empty ``market_unique_keys`` means every market. ``first`` of None
    returns everything from ``skip`` on.
    """

    user_address: str
    market_unique_keys: tuple[str, ...] = ()
    timestamp_gte: int | None = None
    timestamp_lte: int | None = None
    skip: int = 0
    first: int | None = None

    def matches_market(self, unique_key: str) -> bool:
        if not self.market_unique_keys:
            return True
        return unique_key.lower() in {k.lower() for k in self.market_unique_keys}


# ---------------------------------------------------------------------------
# Historical data
# ---------------------------------------------------------------------------

RATE_SERIES = ("supply_apy", "borrow_apy", "rate_at_u_target", "utilization")
VOLUME_SERIES = (
    "supply_assets_usd",
    "borrow_assets_usd",
    "liquidity_assets_usd",
    "supply_assets",
    "borrow_assets",
    "liquidity_assets",
)


@dataclass(frozen=True)
class TimeseriesPoint:
    x: int
    y: float


@dataclass(frozen=True)
class TimeseriesOptions:
    start_timestamp: int = 0
    end_timestamp: int = 0
    interval: str = "HOUR"


@dataclass(frozen=True)
class HistoricalData:
    """Rate and volume series, each sorted by ``x`` ascending."""

    rates: dict[str, tuple[TimeseriesPoint, ...]] = field(default_factory=dict)
    volumes: dict[str, tuple[TimeseriesPoint, ...]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Vaults
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VaultV2Cap:
    """Allocation limit record.

    ``relative_cap`` is WAD-scaled (1e18 = 100%); ``absolute_cap`` is in the
    vault asset's units with max uint128 meaning unlimited. The ``old_*``
    fields are only set on mutations headed for a transaction batch.
    """

    cap_id: str
    id_params: str
    relative_cap: str = "0"
    absolute_cap: str = "0"
    old_relative_cap: str | None = None
    old_absolute_cap: str | None = None


@dataclass(frozen=True)
class VaultV2Details:
    address: str
    chain_id: int
    asset: str
    asset_decimals: int = 18
    symbol: str = ""
    name: str = ""
    curator: str = ""
    owner: str = ""
    allocators: tuple[str, ...] = ()
    sentinels: tuple[str, ...] = ()
    caps: tuple[VaultV2Cap, ...] = ()
    adapters: tuple[str, ...] = ()
    avg_apy: float | None = None


@dataclass(frozen=True)
class CollateralAllocation:
    collateral_address: str
    token: TokenInfo
    cap: VaultV2Cap
    relative_cap_percent: str = "0"


@dataclass(frozen=True)
class MarketAllocation:
    market: Market
    cap: VaultV2Cap
    relative_cap_percent: str = "0"
