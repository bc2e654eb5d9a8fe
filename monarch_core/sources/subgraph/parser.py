"""Pure transforms from Morpho Blue subgraph payloads: no I/O.

The subgraph has no authoritative USD prices for every token. When either
side of a market lacks one, prices are estimated from the token's peg
(USD → 1, BTC/ETH → reference price) and the market is tagged with
``SUBGRAPH_NO_PRICE``. This is the only place estimated USD values are
produced.
"""
from __future__ import annotations

import logging
from typing import Any

from ...interfaces.token_lookup import TokenLookup
from ...market_warnings import (
    SUBGRAPH_NO_PRICE,
    UNRECOGNIZED_COLLATERAL,
    UNRECOGNIZED_LOAN,
)
from ...models import (
    MARKET_BORROW,
    MARKET_LIQUIDATION,
    MARKET_REPAY,
    MARKET_SUPPLY,
    MARKET_SUPPLY_COLLATERAL,
    MARKET_WITHDRAW,
    MARKET_WITHDRAW_COLLATERAL,
    RATE_SERIES,
    VOLUME_SERIES,
    HistoricalData,
    Market,
    MarketActivityTransaction,
    MarketBorrower,
    MarketLiquidationTransaction,
    MarketPositionState,
    MarketState,
    MarketSupplier,
    MarketWarning,
    TimeseriesPoint,
    TokenInfo,
    UserTransaction,
)
from ...tokens import estimate_price
from ..normalize import amount, by_timestamp_desc, safe_float, safe_int, to_units

logger = logging.getLogger(__name__)

FEE_SCALE = 10_000


def map_token(raw: dict[str, Any] | None) -> TokenInfo:
    raw = raw or {}
    decimals = raw.get("decimals")
    return TokenInfo(
        address=raw.get("id") or "0x",
        symbol=raw.get("symbol") or "Unknown",
        decimals=safe_int(decimals) if decimals is not None else 18,
        name=raw.get("name") or "Unknown Token",
    )


def _rate(rates: list[dict[str, Any]] | None, side: str) -> float:
    for r in rates or []:
        if isinstance(r, dict) and r.get("side") == side:
            return safe_float(r.get("rate"))
    return 0.0


def transform_market(
    raw: dict[str, Any],
    chain_id: int,
    tokens: TokenLookup,
    major_prices: dict[str, float],
) -> Market:
    loan_asset = map_token(raw.get("borrowedToken"))
    collateral_asset = map_token(raw.get("inputToken"))

    supply_assets = amount(raw.get("totalSupply"), default="") or amount(
        raw.get("inputTokenBalance")
    )
    borrow_assets = amount(raw.get("totalBorrow"), default="") or amount(
        raw.get("variableBorrowedTokenBalance")
    )
    collateral_assets = amount(raw.get("totalCollateral"))

    supply_num = int(supply_assets)
    borrow_num = int(borrow_assets)
    utilization = borrow_num / supply_num if supply_num > 0 else 0.0

    warnings: list[MarketWarning] = []

    loan_price = safe_float((raw.get("borrowedToken") or {}).get("lastPriceUSD"))
    collateral_price = safe_float((raw.get("inputToken") or {}).get("lastPriceUSD"))
    has_usd_price = loan_price > 0 and collateral_price > 0

    known_loan = tokens.find_token(loan_asset.address, chain_id)
    known_collateral = tokens.find_token(collateral_asset.address, chain_id)
    if known_loan is None:
        warnings.append(UNRECOGNIZED_LOAN)
    if known_collateral is None:
        warnings.append(UNRECOGNIZED_COLLATERAL)

    if not has_usd_price:
        if known_loan is not None:
            loan_price = estimate_price(known_loan, major_prices) or 0.0
        if known_collateral is not None:
            collateral_price = estimate_price(known_collateral, major_prices) or 0.0
        warnings.append(SUBGRAPH_NO_PRICE)

    liquidity_assets = str(supply_num - borrow_num)

    state = MarketState(
        supply_assets=supply_assets,
        borrow_assets=borrow_assets,
        supply_shares=amount(raw.get("totalSupplyShares")),
        borrow_shares=amount(raw.get("totalBorrowShares")),
        liquidity_assets=liquidity_assets,
        collateral_assets=collateral_assets,
        supply_assets_usd=to_units(supply_assets, loan_asset.decimals) * loan_price,
        borrow_assets_usd=to_units(borrow_assets, loan_asset.decimals) * loan_price,
        liquidity_assets_usd=to_units(liquidity_assets, loan_asset.decimals) * loan_price,
        collateral_assets_usd=(
            to_units(collateral_assets, collateral_asset.decimals) * collateral_price
        ),
        utilization=utilization,
        supply_apy=_rate(raw.get("rates"), "LENDER"),
        borrow_apy=_rate(raw.get("rates"), "BORROWER"),
        fee=safe_float(raw.get("fee")) / FEE_SCALE,
        timestamp=safe_int(raw.get("lastUpdate")),
    )

    return Market(
        unique_key=raw.get("id") or "",
        chain_id=chain_id,
        loan_asset=loan_asset,
        collateral_asset=collateral_asset,
        oracle_address=(raw.get("oracle") or {}).get("oracleAddress") or "0x",
        irm_address=raw.get("irm") or "0x",
        lltv=amount(raw.get("lltv")),
        state=state,
        whitelisted=True,
        warnings=tuple(warnings),
        has_usd_price=has_usd_price,
        morpho_address=(raw.get("protocol") or {}).get("id") or "0x",
    )


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


def _event(raw: dict[str, Any], tx_type: str) -> MarketActivityTransaction:
    return MarketActivityTransaction(
        type=tx_type,
        hash=raw.get("hash") or "",
        timestamp=safe_int(raw.get("timestamp")),
        amount=amount(raw.get("amount")),
        user_address=(raw.get("account") or {}).get("id") or "",
    )


def merge_activity(
    first: list[dict[str, Any]] | None,
    first_type: str,
    second: list[dict[str, Any]] | None,
    second_type: str,
) -> list[MarketActivityTransaction]:
    """Combine two event streams, most recent first."""
    merged = [_event(e, first_type) for e in first or []]
    merged += [_event(e, second_type) for e in second or []]
    return by_timestamp_desc(merged)


def merge_liquidations(
    liquidates: list[dict[str, Any]] | None,
    bad_debt_realizations: list[dict[str, Any]] | None,
) -> list[MarketLiquidationTransaction]:
    """Join bad-debt realizations onto their liquidation by liquidation id."""
    bad_debt: dict[str, str] = {}
    for realization in bad_debt_realizations or []:
        liquidation_id = (realization.get("liquidation") or {}).get("id")
        if liquidation_id:
            bad_debt[liquidation_id] = amount(realization.get("badDebt"))

    result = [
        MarketLiquidationTransaction(
            type="MarketLiquidation",
            hash=raw.get("hash") or "",
            timestamp=safe_int(raw.get("timestamp")),
            liquidator=(raw.get("liquidator") or {}).get("id") or "",
            repaid_assets=amount(raw.get("repaid")),
            seized_assets=amount(raw.get("amount")),
            bad_debt_assets=bad_debt.get(raw.get("id") or "", "0"),
        )
        for raw in liquidates or []
    ]
    return by_timestamp_desc(result)


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


def _shares_to_assets(shares: str, total_assets: int, total_shares: int) -> str:
    if total_shares <= 0:
        return "0"
    return str(int(shares) * total_assets // total_shares)


def map_suppliers(data: dict[str, Any] | None) -> list[MarketSupplier]:
    data = data or {}
    market = data.get("market") or {}
    total_supply = int(amount(market.get("totalSupply")))
    total_shares = int(amount(market.get("totalSupplyShares")))

    suppliers: list[MarketSupplier] = []
    for position in data.get("positions") or []:
        shares = amount(position.get("shares"))
        suppliers.append(
            MarketSupplier(
                user_address=(position.get("account") or {}).get("id") or "",
                supply_shares=shares,
                supply_assets=_shares_to_assets(shares, total_supply, total_shares),
            )
        )
    return suppliers


def map_borrowers(data: dict[str, Any] | None) -> list[MarketBorrower]:
    data = data or {}
    market = data.get("market") or {}
    total_borrow = int(amount(market.get("totalBorrow")))
    total_shares = int(amount(market.get("totalBorrowShares")))

    borrowers: list[MarketBorrower] = []
    for position in data.get("positions") or []:
        account = position.get("account") or {}
        collateral_positions = account.get("positions") or []
        collateral = (
            amount(collateral_positions[0].get("balance")) if collateral_positions else "0"
        )
        borrowers.append(
            MarketBorrower(
                user_address=account.get("id") or "",
                borrow_assets=_shares_to_assets(
                    amount(position.get("shares")), total_borrow, total_shares
                ),
                collateral=collateral,
            )
        )
    return borrowers


# ---------------------------------------------------------------------------
# User positions and history
# ---------------------------------------------------------------------------


def position_market_ids(data: dict[str, Any] | None) -> list[str]:
    """Distinct market ids from an account's positions, in response order."""
    account = (data or {}).get("account") or {}
    seen: dict[str, None] = {}
    for position in account.get("positions") or []:
        market_id = (position.get("market") or {}).get("id")
        if market_id:
            seen.setdefault(market_id, None)
    return list(seen)


def build_position_state(
    positions: list[dict[str, Any]] | None, market: Market
) -> MarketPositionState:
    """Fold a user's per-side subgraph positions into one position state.

    Supply and borrow sides hold shares, converted to assets with the
    market's totals; the collateral side holds the asset amount directly.
    Sides whose asset does not match the market are ignored.
    """
    loan = market.loan_asset.address.lower()
    collateral_token = market.collateral_asset.address.lower()
    state = market.state
    values: dict[str, str] = {}

    for position in positions or []:
        side = position.get("side")
        asset = ((position.get("asset") or {}).get("id") or "").lower()
        shares = amount(position.get("shares"), default="") or amount(position.get("balance"))
        if side == "SUPPLIER" and asset == loan:
            values["supply_shares"] = shares
            values["supply_assets"] = _shares_to_assets(
                shares, int(state.supply_assets), int(state.supply_shares)
            )
        elif side == "BORROWER" and asset == loan:
            values["borrow_shares"] = shares
            values["borrow_assets"] = _shares_to_assets(
                shares, int(state.borrow_assets), int(state.borrow_shares)
            )
        elif side == "COLLATERAL" and asset == collateral_token:
            values["collateral"] = amount(position.get("balance"))
        else:
            logger.warning(
                "Ignoring %s position on asset %s in market %s",
                side,
                asset,
                market.unique_key,
            )

    return MarketPositionState(**values)


def _user_event(
    raw: dict[str, Any], tx_type: str, chain_id: int, assets_key: str = "amount"
) -> UserTransaction:
    return UserTransaction(
        hash=raw.get("hash") or "",
        timestamp=safe_int(raw.get("timestamp")),
        type=tx_type,
        market_unique_key=(raw.get("market") or {}).get("id") or "",
        chain_id=chain_id,
        shares=amount(raw.get("shares")),
        assets=amount(raw.get(assets_key)),
    )


def transform_user_transactions(
    account: dict[str, Any] | None, chain_id: int
) -> list[UserTransaction]:
    """Flatten an account's event lists into transactions, most recent first."""
    account = account or {}
    result: list[UserTransaction] = []
    for raw in account.get("deposits") or []:
        tx_type = MARKET_SUPPLY_COLLATERAL if raw.get("isCollateral") else MARKET_SUPPLY
        result.append(_user_event(raw, tx_type, chain_id))
    for raw in account.get("withdraws") or []:
        tx_type = MARKET_WITHDRAW_COLLATERAL if raw.get("isCollateral") else MARKET_WITHDRAW
        result.append(_user_event(raw, tx_type, chain_id))
    for raw in account.get("borrows") or []:
        result.append(_user_event(raw, MARKET_BORROW, chain_id))
    for raw in account.get("repays") or []:
        result.append(_user_event(raw, MARKET_REPAY, chain_id))
    for raw in account.get("liquidations") or []:
        result.append(_user_event(raw, MARKET_LIQUIDATION, chain_id, assets_key="repaid"))
    return by_timestamp_desc(result)


# ---------------------------------------------------------------------------
# Historical
# ---------------------------------------------------------------------------


def parse_hourly_snapshots(snapshots: list[dict[str, Any]] | None) -> HistoricalData | None:
    """Hourly snapshots to series; USD volumes and target rates are unavailable (0)."""
    if not snapshots:
        return None

    rates: dict[str, list[TimeseriesPoint]] = {name: [] for name in RATE_SERIES}
    volumes: dict[str, list[TimeseriesPoint]] = {name: [] for name in VOLUME_SERIES}

    for snapshot in snapshots:
        try:
            timestamp = int(snapshot.get("timestamp"))
        except (TypeError, ValueError):
            logger.warning("Skipping snapshot with invalid timestamp: %s", snapshot)
            continue

        snapshot_rates = snapshot.get("rates")
        rates["supply_apy"].append(TimeseriesPoint(timestamp, _rate(snapshot_rates, "LENDER")))
        rates["borrow_apy"].append(TimeseriesPoint(timestamp, _rate(snapshot_rates, "BORROWER")))
        rates["rate_at_u_target"].append(TimeseriesPoint(timestamp, 0.0))
        rates["utilization"].append(TimeseriesPoint(timestamp, 0.0))

        supply_native = int(amount(snapshot.get("inputTokenBalance")))
        borrow_native = int(amount(snapshot.get("variableBorrowedTokenBalance")))

        volumes["supply_assets_usd"].append(TimeseriesPoint(timestamp, 0.0))
        volumes["borrow_assets_usd"].append(TimeseriesPoint(timestamp, 0.0))
        volumes["liquidity_assets_usd"].append(TimeseriesPoint(timestamp, 0.0))
        volumes["supply_assets"].append(TimeseriesPoint(timestamp, float(supply_native)))
        volumes["borrow_assets"].append(TimeseriesPoint(timestamp, float(borrow_native)))
        volumes["liquidity_assets"].append(
            TimeseriesPoint(timestamp, float(supply_native - borrow_native))
        )

    def _sorted(series: dict[str, list[TimeseriesPoint]]) -> dict[str, tuple[TimeseriesPoint, ...]]:
        return {name: tuple(sorted(points, key=lambda p: p.x)) for name, points in series.items()}

    return HistoricalData(rates=_sorted(rates), volumes=_sorted(volumes))
