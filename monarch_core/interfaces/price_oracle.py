"""Price oracle protocol: major asset USD prices."""
from typing import Protocol


class PriceOracle(Protocol):
    """Abstract interface for fetching BTC/ETH reference prices."""

    async def fetch_major_prices(self) -> dict[str, float]: ...
