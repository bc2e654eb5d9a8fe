"""Morpho Blue market data normalization and VaultV2 cap management."""

__version__ = "0.1.0"
