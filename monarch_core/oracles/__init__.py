from .coingecko import CoinGeckoOracle

__all__ = ["CoinGeckoOracle"]
