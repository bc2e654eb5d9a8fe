"""Service modules"""
from .market_service import MarketDataService, NoSourceAvailableError, RequestGeneration
from .vault_service import SaveResult, VaultOverview, VaultService

__all__ = [
    "MarketDataService",
    "NoSourceAvailableError",
    "RequestGeneration",
    "SaveResult",
    "VaultOverview",
    "VaultService",
]
