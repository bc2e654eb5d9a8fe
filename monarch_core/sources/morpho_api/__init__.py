from .adapter import MorphoApiSource

__all__ = ["MorphoApiSource"]
