"""Token registry built from configuration."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .config import AppConfig, TokenConfig

logger = logging.getLogger(__name__)


class TokenPeg(str, Enum):
    USD = "USD"
    BTC = "BTC"
    ETH = "ETH"


@dataclass(frozen=True)
class Token:
    symbol: str
    decimals: int
    address: str
    chain_id: int
    name: str = ""
    peg: TokenPeg | None = None


class TokenRegistry:
    """Case-insensitive lookup of known tokens per chain."""

    def __init__(
        self,
        tokens: tuple[TokenConfig, ...] = (),
        whitelisted_oracles: dict[int, tuple[str, ...]] | None = None,
    ) -> None:
        self._tokens: dict[tuple[int, str], Token] = {}
        for cfg in tokens:
            peg = TokenPeg(cfg.peg) if cfg.peg else None
            for chain_id, address in cfg.addresses.items():
                self._tokens[(chain_id, address.lower())] = Token(
                    symbol=cfg.symbol,
                    decimals=cfg.decimals,
                    address=address,
                    chain_id=chain_id,
                    name=cfg.name,
                    peg=peg,
                )
        self._oracles = {
            chain_id: {addr.lower() for addr in addrs}
            for chain_id, addrs in (whitelisted_oracles or {}).items()
        }

    @classmethod
    def from_config(cls, config: AppConfig) -> TokenRegistry:
        return cls(config.tokens, config.whitelisted_oracles)

    def find_token(self, address: str, chain_id: int) -> Token | None:
        if not address:
            return None
        return self._tokens.get((chain_id, address.lower()))

    def is_whitelisted_oracle(self, oracle_address: str, chain_id: int) -> bool | None:
        """True/False when a whitelist exists for the chain, None otherwise."""
        allowed = self._oracles.get(chain_id)
        if allowed is None:
            return None
        return oracle_address.lower() in allowed


def estimate_price(token: Token, major_prices: dict[str, float]) -> float | None:
    """Estimate a USD price from the token's peg, or None when unpegged."""
    if token.peg is None:
        return None
    if token.peg is TokenPeg.USD:
        return 1.0
    return major_prices.get(token.peg.value)
