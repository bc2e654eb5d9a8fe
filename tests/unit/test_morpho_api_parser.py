"""Unit tests for the Morpho API parser: pure functions, no I/O."""
from __future__ import annotations

import pytest

from monarch_core.models import TimeseriesPoint
from monarch_core.sources.morpho_api.parser import (
    parse_activity,
    parse_borrower,
    parse_historical,
    parse_liquidation,
    parse_market,
    parse_markets_page,
    parse_position_state,
    parse_supplier,
    parse_token,
    parse_transactions_page,
    parse_user_transaction,
    parse_vault,
)
from monarch_core.sources.normalize import amount, by_timestamp_desc, safe_int

from sample_data import USDC, WETH


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


class TestAmount:
    def test_int(self) -> None:
        assert amount(10**30) == str(10**30)

    def test_numeric_string(self) -> None:
        assert amount("123") == "123"

    def test_scientific_notation(self) -> None:
        assert amount("1e3") == "1000"

    def test_none_and_garbage(self) -> None:
        assert amount(None) == "0"
        assert amount("abc") == "0"
        assert amount(None, default="") == ""


class TestSafeInt:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(None, 0), ("42", 42), ("3.9", 3), ("abc", 0), ("nan", 0), ("inf", 0), ("-inf", 0)],
    )
    def test_coercion(self, raw: object, expected: int) -> None:
        assert safe_int(raw) == expected


# ---------------------------------------------------------------------------
# Tokens and markets
# ---------------------------------------------------------------------------


class TestParseToken:
    def test_full(self) -> None:
        token = parse_token({"address": USDC, "symbol": "USDC", "decimals": 6, "name": "USD Coin"})
        assert (token.address, token.symbol, token.decimals) == (USDC, "USDC", 6)

    def test_missing_fields_default(self) -> None:
        token = parse_token(None)
        assert token.address == "0x"
        assert token.symbol == "Unknown"
        assert token.decimals == 18


class TestParseMarket:
    def test_fields(self, api_market_payload: dict) -> None:
        market = parse_market(api_market_payload, 1)
        assert market.unique_key == "0xmarket1"
        assert market.chain_id == 1
        assert market.loan_asset.address == USDC
        assert market.collateral_asset.address == WETH
        assert market.state.supply_assets == "1000000000"
        assert market.state.supply_assets_usd == pytest.approx(1000.0)
        assert market.state.utilization == pytest.approx(0.4)
        assert market.state.timestamp == 1700000000
        assert market.whitelisted is True
        assert market.has_usd_price is True
        assert market.warnings[0].type == "bad_debt_unrealized"
        assert market.warnings[0].typename == "MarketWarning"

    def test_null_usd_means_no_price(self, api_market_payload: dict) -> None:
        api_market_payload["state"]["supplyAssetsUsd"] = None
        market = parse_market(api_market_payload, 1)
        assert market.has_usd_price is False
        assert market.state.supply_assets_usd == 0.0

    def test_null_state(self, api_market_payload: dict) -> None:
        api_market_payload["state"] = None
        market = parse_market(api_market_payload, 1)
        assert market.state.supply_assets == "0"
        assert market.has_usd_price is False

    def test_chain_falls_back_to_requested(self, api_market_payload: dict) -> None:
        del api_market_payload["morphoBlue"]
        assert parse_market(api_market_payload, 8453).chain_id == 8453


class TestPages:
    def test_markets_page(self) -> None:
        data = {"markets": {"items": [{"uniqueKey": "a"}], "pageInfo": {"countTotal": 2500, "count": 1}}}
        items, total, count = parse_markets_page(data)
        assert items == [{"uniqueKey": "a"}]
        assert (total, count) == (2500, 1)

    def test_markets_page_count_defaults_to_len(self) -> None:
        data = {"markets": {"items": [{}, {}], "pageInfo": {"countTotal": 2}}}
        assert parse_markets_page(data)[2] == 2

    def test_empty_response(self) -> None:
        assert parse_markets_page(None) == ([], 0, 0)
        assert parse_transactions_page(None) == ([], 0)


# ---------------------------------------------------------------------------
# Activity and positions
# ---------------------------------------------------------------------------


class TestActivity:
    def test_parse_activity(self) -> None:
        tx = parse_activity(
            {
                "type": "MarketSupply",
                "hash": "0xh",
                "timestamp": 5,
                "data": {"assets": "100"},
                "user": {"address": "0xu"},
            }
        )
        assert (tx.type, tx.hash, tx.timestamp, tx.amount, tx.user_address) == (
            "MarketSupply",
            "0xh",
            5,
            "100",
            "0xu",
        )

    def test_sorted_desc(self) -> None:
        txs = [parse_activity({"timestamp": t}) for t in (1, 3, 2)]
        assert [t.timestamp for t in by_timestamp_desc(txs)] == [3, 2, 1]

    def test_parse_liquidation(self) -> None:
        liq = parse_liquidation(
            {
                "hash": "0xh",
                "timestamp": 9,
                "data": {
                    "liquidator": "0xl",
                    "repaidAssets": "10",
                    "seizedAssets": "12",
                    "badDebtAssets": None,
                },
            }
        )
        assert liq.type == "MarketLiquidation"
        assert (liq.repaid_assets, liq.seized_assets, liq.bad_debt_assets) == ("10", "12", "0")

    def test_positions(self) -> None:
        supplier = parse_supplier(
            {"user": {"address": "0xs"}, "state": {"supplyShares": "7", "supplyAssets": "6"}}
        )
        assert (supplier.supply_shares, supplier.supply_assets) == ("7", "6")
        borrower = parse_borrower(
            {"user": {"address": "0xb"}, "state": {"borrowAssets": "3", "collateral": "4"}}
        )
        assert (borrower.borrow_assets, borrower.collateral) == ("3", "4")


# ---------------------------------------------------------------------------
# User positions and history
# ---------------------------------------------------------------------------


class TestUserData:
    def test_position_state(self) -> None:
        state = parse_position_state(
            {
                "supplyShares": "1000",
                "supplyAssets": "10",
                "borrowShares": None,
                "borrowAssets": "0",
                "collateral": "5",
            }
        )
        assert state.supply_shares == "1000"
        assert state.supply_assets == "10"
        assert state.borrow_shares == "0"
        assert state.collateral == "5"

    def test_transfer_transaction(self) -> None:
        tx = parse_user_transaction(
            {
                "hash": "0xh",
                "timestamp": 1700000000,
                "type": "MarketSupply",
                "data": {"shares": "100", "assets": "1", "market": {"uniqueKey": "0xm"}},
            },
            1,
        )
        assert (tx.type, tx.market_unique_key, tx.chain_id) == ("MarketSupply", "0xm", 1)
        assert (tx.shares, tx.assets) == ("100", "1")

    def test_liquidation_uses_repaid_assets(self) -> None:
        tx = parse_user_transaction(
            {
                "hash": "0xl",
                "timestamp": 5,
                "type": "MarketLiquidation",
                "data": {"repaidAssets": "77", "market": {"uniqueKey": "0xm"}},
            },
            8453,
        )
        assert tx.assets == "77"
        assert tx.shares == "0"

    def test_missing_type_uses_typename(self) -> None:
        tx = parse_user_transaction({"data": {"__typename": "MarketRepay"}}, 1)
        assert tx.type == "MarketRepay"
        assert tx.market_unique_key == ""


# ---------------------------------------------------------------------------
# Historical and vaults
# ---------------------------------------------------------------------------


class TestParseHistorical:
    def test_series_sorted_ascending(self) -> None:
        data = {
            "marketByUniqueKey": {
                "historicalState": {
                    "supplyApy": [{"x": 2, "y": 0.2}, {"x": 1, "y": 0.1}],
                    "borrowApy": [{"x": 1, "y": 0.3}],
                    "supplyAssetsUsd": None,
                }
            }
        }
        result = parse_historical(data)
        assert result is not None
        assert result.rates["supply_apy"] == (TimeseriesPoint(1, 0.1), TimeseriesPoint(2, 0.2))
        assert result.rates["borrow_apy"] == (TimeseriesPoint(1, 0.3),)
        assert result.rates["rate_at_u_target"] == ()
        assert result.volumes["supply_assets_usd"] == ()

    def test_missing_supply_apy_is_none(self) -> None:
        data = {"marketByUniqueKey": {"historicalState": {"borrowApy": [{"x": 1, "y": 0.3}]}}}
        assert parse_historical(data) is None

    def test_missing_market_is_none(self) -> None:
        assert parse_historical({"marketByUniqueKey": None}) is None


class TestParseVault:
    def test_fields(self) -> None:
        vault = parse_vault(
            {
                "address": "0xv",
                "name": "Vault",
                "symbol": "vUSDC",
                "asset": {"address": USDC, "decimals": 6},
                "owner": {"address": "0xo"},
                "curator": None,
                "allocators": [{"allocator": {"address": "0xa"}}],
                "caps": {
                    "items": [
                        {"id": "0xc", "idData": "0xp", "relativeCap": "1", "absoluteCap": "2"}
                    ]
                },
                "avgApy": 0.04,
            },
            1,
        )
        assert vault.asset == USDC
        assert vault.asset_decimals == 6
        assert vault.owner == "0xo"
        assert vault.curator == ""
        assert vault.allocators == ("0xa",)
        assert vault.caps[0].cap_id == "0xc"
        assert vault.caps[0].id_params == "0xp"
        assert vault.avg_apy == pytest.approx(0.04)

    def test_missing_caps(self) -> None:
        vault = parse_vault({"address": "0xv", "asset": None}, 1)
        assert vault.caps == ()
        assert vault.asset_decimals == 18
        assert vault.avg_apy is None
