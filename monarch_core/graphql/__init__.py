"""GraphQL transport for the Morpho API and subgraphs."""
from .client import MorphoApiFetcher, SubgraphFetcher
from .errors import GraphQLRequestError, GraphQLResponseError

__all__ = [
    "GraphQLRequestError",
    "GraphQLResponseError",
    "MorphoApiFetcher",
    "SubgraphFetcher",
]
