from .adapter import SubgraphSource

__all__ = ["SubgraphSource"]
