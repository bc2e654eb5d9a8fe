"""Unit tests for the token registry and peg price estimates."""
from __future__ import annotations

from monarch_core.config import TokenConfig
from monarch_core.tokens import Token, TokenPeg, TokenRegistry, estimate_price

from sample_data import ORACLE, USDC, WETH


class TestTokenRegistry:
    def test_find_token_case_insensitive(self, registry: TokenRegistry) -> None:
        token = registry.find_token(USDC.lower(), 1)
        assert token is not None
        assert token.symbol == "USDC"
        assert token.decimals == 6
        assert token.peg is TokenPeg.USD

    def test_unknown_chain(self, registry: TokenRegistry) -> None:
        assert registry.find_token(USDC, 8453) is None

    def test_unknown_address(self, registry: TokenRegistry) -> None:
        assert registry.find_token("0x" + "ab" * 20, 1) is None

    def test_empty_address(self, registry: TokenRegistry) -> None:
        assert registry.find_token("", 1) is None

    def test_multi_chain_token(self) -> None:
        registry = TokenRegistry(
            (TokenConfig(symbol="WETH", addresses={1: WETH, 8453: "0x4200000000000000000000000000000000000006"}),)
        )
        assert registry.find_token(WETH, 1) is not None
        base = registry.find_token("0x4200000000000000000000000000000000000006", 8453)
        assert base is not None
        assert base.chain_id == 8453
        assert base.peg is None

    def test_oracle_whitelist(self) -> None:
        registry = TokenRegistry(whitelisted_oracles={1: (ORACLE,)})
        assert registry.is_whitelisted_oracle(ORACLE, 1) is True
        assert registry.is_whitelisted_oracle("0x" + "99" * 20, 1) is False
        assert registry.is_whitelisted_oracle(ORACLE, 8453) is None


class TestEstimatePrice:
    def _token(self, peg: TokenPeg | None) -> Token:
        return Token(symbol="T", decimals=18, address="0x1", chain_id=1, peg=peg)

    def test_usd_peg(self) -> None:
        assert estimate_price(self._token(TokenPeg.USD), {}) == 1.0

    def test_btc_and_eth_pegs(self) -> None:
        prices = {"BTC": 60000.0, "ETH": 3000.0}
        assert estimate_price(self._token(TokenPeg.BTC), prices) == 60000.0
        assert estimate_price(self._token(TokenPeg.ETH), prices) == 3000.0

    def test_missing_reference_price(self) -> None:
        assert estimate_price(self._token(TokenPeg.ETH), {}) is None

    def test_unpegged(self) -> None:
        assert estimate_price(self._token(None), {"ETH": 3000.0}) is None
