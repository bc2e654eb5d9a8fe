"""Protocol interfaces for the Morpho data layer."""
from .executor import CapTransactionExecutor
from .fetcher import GraphQLFetcher, SubgraphFetcherProtocol
from .market_source import MarketDataSource
from .price_oracle import PriceOracle
from .token_lookup import TokenLookup

__all__ = [
    "CapTransactionExecutor",
    "GraphQLFetcher",
    "MarketDataSource",
    "PriceOracle",
    "SubgraphFetcherProtocol",
    "TokenLookup",
]
