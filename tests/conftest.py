"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from monarch_core.caps.codec import market_id
from monarch_core.config import (
    AppConfig,
    FetcherConfig,
    NetworkConfig,
    TokenConfig,
)
from monarch_core.models import Market, MarketParams, MarketState, TokenInfo
from monarch_core.tokens import TokenRegistry

from sample_data import IRM, LLTV_86, ORACLE, USDC, WBTC, WETH


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_tokens() -> tuple[TokenConfig, ...]:
    return (
        TokenConfig(symbol="USDC", decimals=6, name="USD Coin", peg="USD", addresses={1: USDC}),
        TokenConfig(symbol="WETH", decimals=18, name="Wrapped Ether", peg="ETH", addresses={1: WETH}),
        TokenConfig(symbol="WBTC", decimals=8, name="Wrapped BTC", peg="BTC", addresses={1: WBTC}),
    )


@pytest.fixture()
def sample_app_config(sample_tokens: tuple[TokenConfig, ...]) -> AppConfig:
    return AppConfig(
        fetcher=FetcherConfig(
            api_url="https://api.example.com/graphql",
            max_retries=3,
            retry_delay_ms=500,
            request_timeout=5,
        ),
        networks={
            1: NetworkConfig(
                chain_id=1,
                name="Ethereum",
                subgraph_url="https://subgraph.example.com/mainnet",
                vaults_v2_supported=True,
            ),
            8453: NetworkConfig(
                chain_id=8453,
                name="Base",
                subgraph_url="https://subgraph.example.com/base",
            ),
        },
        tokens=sample_tokens,
    )


@pytest.fixture()
def registry(sample_app_config: AppConfig) -> TokenRegistry:
    return TokenRegistry.from_config(sample_app_config)


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_market() -> Callable[..., Market]:
    """Factory for markets whose unique key is the real Morpho market id."""

    def _make(
        collateral: str = WETH,
        loan: str = USDC,
        lltv: int = LLTV_86,
        chain_id: int = 1,
        collateral_symbol: str = "WETH",
    ) -> Market:
        params = MarketParams(
            loan_token=loan,
            collateral_token=collateral,
            oracle=ORACLE,
            irm=IRM,
            lltv=lltv,
        )
        return Market(
            unique_key=market_id(params),
            chain_id=chain_id,
            loan_asset=TokenInfo(address=loan, symbol="USDC", decimals=6, name="USD Coin"),
            collateral_asset=TokenInfo(
                address=collateral, symbol=collateral_symbol, decimals=18
            ),
            oracle_address=ORACLE,
            irm_address=IRM,
            lltv=str(lltv),
            state=MarketState(supply_assets="1000000", borrow_assets="500000"),
        )

    return _make


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    fetcher:
      api_url: "https://api.example.com/graphql"
      max_retries: 2
      retry_delay_ms: 100
    networks:
      1:
        name: Ethereum
        subgraph_url: "https://subgraph.example.com/mainnet"
        vaults_v2_supported: true
      8453:
        name: Base
    cache:
      positions_ttl_seconds: 30
    prices:
      ttl_seconds: 15
    tokens:
      - symbol: USDC
        decimals: 6
        peg: usd
        addresses:
          1: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
      - symbol: WETH
        peg: ETH
        addresses:
          1: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
    blacklisted_tokens:
      - "0xDEAD000000000000000000000000000000000000"
    whitelisted_oracles:
      1:
        - "0x1111111111111111111111111111111111111111"
    vaults:
      - label: main-usdc
        chain_id: 1
        address: "0x3333333333333333333333333333333333333333"
        adapter: "0x2222222222222222222222222222222222222222"
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample backend payloads
# ---------------------------------------------------------------------------


@pytest.fixture()
def api_market_payload() -> dict:
    return {
        "uniqueKey": "0xmarket1",
        "lltv": str(LLTV_86),
        "oracleAddress": ORACLE,
        "irmAddress": IRM,
        "whitelisted": True,
        "loanAsset": {"address": USDC, "symbol": "USDC", "name": "USD Coin", "decimals": 6},
        "collateralAsset": {"address": WETH, "symbol": "WETH", "name": "Wrapped Ether", "decimals": 18},
        "morphoBlue": {"address": "0xBBBBBbbBBb9cC5e90e3b3Af64bdAF62C37EEFFCb", "chain": {"id": 1}},
        "state": {
            "supplyAssets": "1000000000",
            "borrowAssets": "400000000",
            "supplyShares": "1000000000000000",
            "borrowShares": "400000000000000",
            "liquidityAssets": "600000000",
            "collateralAssets": "500000000000000000",
            "supplyAssetsUsd": 1000.0,
            "borrowAssetsUsd": 400.0,
            "liquidityAssetsUsd": 600.0,
            "collateralAssetsUsd": 1750.0,
            "utilization": 0.4,
            "supplyApy": 0.03,
            "borrowApy": 0.05,
            "fee": 0.1,
            "timestamp": 1700000000,
            "rateAtUTarget": "1585489599",
        },
        "warnings": [
            {"type": "bad_debt_unrealized", "level": "warning", "__typename": "MarketWarning"}
        ],
        "realizedBadDebt": {"underlying": "0"},
    }


@pytest.fixture()
def subgraph_market_payload() -> dict:
    return {
        "id": "0xmarket1",
        "lltv": str(LLTV_86),
        "irm": IRM,
        "inputToken": {
            "id": WETH.lower(),
            "name": "Wrapped Ether",
            "symbol": "WETH",
            "decimals": 18,
            "lastPriceUSD": "3500",
        },
        "borrowedToken": {
            "id": USDC.lower(),
            "name": "USD Coin",
            "symbol": "USDC",
            "decimals": 6,
            "lastPriceUSD": "1",
        },
        "totalSupplyShares": "1000000000000000",
        "totalBorrowShares": "400000000000000",
        "totalSupply": "1000000000",
        "totalBorrow": "400000000",
        "totalCollateral": "1000000000000000000",
        "fee": "1000",
        "inputTokenBalance": "999",
        "variableBorrowedTokenBalance": "111",
        "lastUpdate": "1700000000",
        "oracle": {"oracleAddress": ORACLE},
        "rates": [{"rate": "0.03", "side": "LENDER"}, {"rate": "0.05", "side": "BORROWER"}],
        "protocol": {"id": "0xBBBBBbbBBb9cC5e90e3b3Af64bdAF62C37EEFFCb"},
    }
