"""Structured market warnings attached to normalized markets."""
from __future__ import annotations

from .models import Market, MarketWarning
from .tokens import TokenRegistry

SUBGRAPH_NO_PRICE = MarketWarning(
    type="subgraph_no_price",
    level="warning",
    typename="MarketWarning_SubgraphNoPrice",
)

UNRECOGNIZED_LOAN = MarketWarning(
    type="unrecognized_loan_asset",
    level="alert",
    typename="MarketWarning_UnrecognizedLoanAsset",
)

UNRECOGNIZED_COLLATERAL = MarketWarning(
    type="unrecognized_collateral_asset",
    level="alert",
    typename="MarketWarning_UnrecognizedCollateralAsset",
)

UNRECOGNIZED_ORACLE = MarketWarning(
    type="unrecognized_oracle",
    level="alert",
    typename="MarketWarning_UnrecognizedOracle",
)

BAD_DEBT_REALIZED = MarketWarning(
    type="bad_debt_realized",
    level="warning",
    typename="MarketWarning_BadDebtRealized",
)


def flag_unrecognized_oracle(market: Market, registry: TokenRegistry | None) -> Market:
    """Attach UNRECOGNIZED_ORACLE when a whitelist exists and excludes the oracle."""
    if registry is None:
        return market
    if registry.is_whitelisted_oracle(market.oracle_address, market.chain_id) is False:
        return market.with_warnings(UNRECOGNIZED_ORACLE)
    return market


def flag_bad_debt(market: Market) -> Market:
    """Attach BAD_DEBT_REALIZED when the market has realized any bad debt."""
    if int(market.realized_bad_debt or 0) > 0:
        return market.with_warnings(BAD_DEBT_REALIZED)
    return market
