"""Pure transforms from Morpho API payloads to the unified model: no I/O."""
from __future__ import annotations

from typing import Any

from ...models import (
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
    TokenInfo,
    UserTransaction,
    VaultV2Cap,
    VaultV2Details,
)
from ..normalize import amount, safe_float, safe_int, sorted_points

# API field name → unified series name
_RATE_FIELDS = dict(
    zip(("supplyApy", "borrowApy", "rateAtUTarget", "utilization"), RATE_SERIES)
)
_VOLUME_FIELDS = dict(
    zip(
        (
            "supplyAssetsUsd",
            "borrowAssetsUsd",
            "liquidityAssetsUsd",
            "supplyAssets",
            "borrowAssets",
            "liquidityAssets",
        ),
        VOLUME_SERIES,
    )
)


def parse_token(raw: dict[str, Any] | None) -> TokenInfo:
    raw = raw or {}
    return TokenInfo(
        address=raw.get("address") or "0x",
        symbol=raw.get("symbol") or "Unknown",
        decimals=safe_int(raw["decimals"]) if raw.get("decimals") is not None else 18,
        name=raw.get("name") or "Unknown Token",
    )


def parse_warnings(raw: list[dict[str, Any]] | None) -> tuple[MarketWarning, ...]:
    return tuple(
        MarketWarning(
            type=w.get("type") or "",
            level=w.get("level") or "",
            typename=w.get("__typename") or "",
        )
        for w in (raw or [])
        if isinstance(w, dict)
    )


def parse_state(raw: dict[str, Any] | None) -> MarketState:
    raw = raw or {}
    return MarketState(
        supply_assets=amount(raw.get("supplyAssets")),
        borrow_assets=amount(raw.get("borrowAssets")),
        supply_shares=amount(raw.get("supplyShares")),
        borrow_shares=amount(raw.get("borrowShares")),
        liquidity_assets=amount(raw.get("liquidityAssets")),
        collateral_assets=amount(raw.get("collateralAssets")),
        supply_assets_usd=safe_float(raw.get("supplyAssetsUsd")),
        borrow_assets_usd=safe_float(raw.get("borrowAssetsUsd")),
        liquidity_assets_usd=safe_float(raw.get("liquidityAssetsUsd")),
        collateral_assets_usd=safe_float(raw.get("collateralAssetsUsd")),
        utilization=safe_float(raw.get("utilization")),
        supply_apy=safe_float(raw.get("supplyApy")),
        borrow_apy=safe_float(raw.get("borrowApy")),
        fee=safe_float(raw.get("fee")),
        timestamp=safe_int(raw.get("timestamp")),
        rate_at_target=amount(raw.get("rateAtUTarget")),
    )


def parse_market(raw: dict[str, Any], chain_id: int) -> Market:
    morpho = raw.get("morphoBlue") or {}
    reported_chain = (morpho.get("chain") or {}).get("id")
    state = raw.get("state") or {}
    return Market(
        unique_key=raw.get("uniqueKey") or "",
        chain_id=safe_int(reported_chain) if reported_chain is not None else chain_id,
        loan_asset=parse_token(raw.get("loanAsset")),
        collateral_asset=parse_token(raw.get("collateralAsset")),
        oracle_address=raw.get("oracleAddress") or "0x",
        irm_address=raw.get("irmAddress") or "0x",
        lltv=amount(raw.get("lltv")),
        state=parse_state(state),
        whitelisted=bool(raw.get("whitelisted", False)),
        warnings=parse_warnings(raw.get("warnings")),
        has_usd_price=state.get("supplyAssetsUsd") is not None,
        realized_bad_debt=amount((raw.get("realizedBadDebt") or {}).get("underlying")),
        morpho_address=morpho.get("address") or "0x",
    )


def parse_markets_page(
    data: dict[str, Any] | None,
) -> tuple[list[dict[str, Any]], int, int]:
    """Return ``(items, countTotal, count)`` for one ``markets`` page."""
    markets = (data or {}).get("markets") or {}
    items = list(markets.get("items") or [])
    page_info = markets.get("pageInfo") or {}
    count = page_info.get("count")
    return (
        items,
        safe_int(page_info.get("countTotal")),
        safe_int(count) if count is not None else len(items),
    )


def parse_transactions_page(
    data: dict[str, Any] | None, key: str = "transactions"
) -> tuple[list[dict[str, Any]], int]:
    block = (data or {}).get(key) or {}
    items = block.get("items") or []
    page_info = block.get("pageInfo") or {}
    return list(items), safe_int(page_info.get("countTotal"))


def parse_activity(raw: dict[str, Any]) -> MarketActivityTransaction:
    data = raw.get("data") or {}
    return MarketActivityTransaction(
        type=raw.get("type") or "",
        hash=raw.get("hash") or "",
        timestamp=safe_int(raw.get("timestamp")),
        amount=amount(data.get("assets")),
        user_address=(raw.get("user") or {}).get("address") or "",
    )


def parse_liquidation(raw: dict[str, Any]) -> MarketLiquidationTransaction:
    data = raw.get("data") or {}
    return MarketLiquidationTransaction(
        type=raw.get("type") or "MarketLiquidation",
        hash=raw.get("hash") or "",
        timestamp=safe_int(raw.get("timestamp")),
        liquidator=data.get("liquidator") or "",
        repaid_assets=amount(data.get("repaidAssets")),
        seized_assets=amount(data.get("seizedAssets")),
        bad_debt_assets=amount(data.get("badDebtAssets")),
    )


def parse_supplier(raw: dict[str, Any]) -> MarketSupplier:
    state = raw.get("state") or {}
    return MarketSupplier(
        user_address=(raw.get("user") or {}).get("address") or "",
        supply_shares=amount(state.get("supplyShares")),
        supply_assets=amount(state.get("supplyAssets")),
    )


def parse_borrower(raw: dict[str, Any]) -> MarketBorrower:
    state = raw.get("state") or {}
    return MarketBorrower(
        user_address=(raw.get("user") or {}).get("address") or "",
        borrow_assets=amount(state.get("borrowAssets")),
        collateral=amount(state.get("collateral")),
    )


def parse_position_state(raw: dict[str, Any] | None) -> MarketPositionState:
    raw = raw or {}
    return MarketPositionState(
        supply_shares=amount(raw.get("supplyShares")),
        supply_assets=amount(raw.get("supplyAssets")),
        borrow_shares=amount(raw.get("borrowShares")),
        borrow_assets=amount(raw.get("borrowAssets")),
        collateral=amount(raw.get("collateral")),
    )


def parse_user_transaction(raw: dict[str, Any], chain_id: int) -> UserTransaction:
    """Transfers carry shares and assets; liquidations only the repaid assets."""
    data = raw.get("data") or {}
    assets = data.get("assets")
    if assets is None:
        assets = data.get("repaidAssets")
    return UserTransaction(
        hash=raw.get("hash") or "",
        timestamp=safe_int(raw.get("timestamp")),
        type=raw.get("type") or data.get("__typename") or "",
        market_unique_key=(data.get("market") or {}).get("uniqueKey") or "",
        chain_id=chain_id,
        shares=amount(data.get("shares")),
        assets=amount(assets),
    )


def parse_historical(data: dict[str, Any] | None) -> HistoricalData | None:
    """None when the payload lacks historical state or its supply APY."""
    market = (data or {}).get("marketByUniqueKey") or {}
    state = market.get("historicalState") or {}
    if not state or not state.get("supplyApy"):
        return None
    return HistoricalData(
        rates={name: sorted_points(state.get(field)) for field, name in _RATE_FIELDS.items()},
        volumes={
            name: sorted_points(state.get(field)) for field, name in _VOLUME_FIELDS.items()
        },
    )


def parse_cap(raw: dict[str, Any]) -> VaultV2Cap:
    return VaultV2Cap(
        cap_id=raw.get("id") or "",
        id_params=raw.get("idData") or "",
        relative_cap=amount(raw.get("relativeCap")),
        absolute_cap=amount(raw.get("absoluteCap")),
    )


def parse_vault(raw: dict[str, Any], chain_id: int) -> VaultV2Details:
    asset = raw.get("asset") or {}
    caps = (raw.get("caps") or {}).get("items") or []
    return VaultV2Details(
        address=raw.get("address") or "",
        chain_id=chain_id,
        asset=asset.get("address") or "",
        asset_decimals=safe_int(asset.get("decimals")) if asset.get("decimals") is not None else 18,
        symbol=raw.get("symbol") or "",
        name=raw.get("name") or "",
        curator=(raw.get("curator") or {}).get("address") or "",
        owner=(raw.get("owner") or {}).get("address") or "",
        allocators=tuple(
            (a.get("allocator") or {}).get("address") or ""
            for a in (raw.get("allocators") or [])
        ),
        caps=tuple(parse_cap(c) for c in caps if isinstance(c, dict)),
        avg_apy=safe_float(raw["avgApy"]) if raw.get("avgApy") is not None else None,
    )
