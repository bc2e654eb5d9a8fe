"""CoinGecko reference prices for BTC and ETH pegged tokens."""
from __future__ import annotations

import logging
import ssl
import time
from collections.abc import Callable

import aiohttp
import certifi

from ..cache import TTLCache
from ..config import PriceConfig

logger = logging.getLogger(__name__)

_IDS = {"bitcoin": "BTC", "ethereum": "ETH"}


class CoinGeckoOracle:
    """Fetch major asset USD prices, cached for ``ttl_seconds``.

    Failures are logged and yield an empty mapping; callers fall back to 0.
    """

    def __init__(
        self,
        config: PriceConfig,
        timeout: int = 30,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = config.coingecko_url
        self.timeout = timeout
        self._cache: TTLCache[dict[str, float]] = TTLCache(config.ttl_seconds, clock)

    async def fetch_major_prices(self) -> dict[str, float]:
        cached = self._cache.get("major")
        if cached is not None:
            return dict(cached)

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    self.url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching prices from CoinGecko: HTTP %s",
                            response.status,
                        )
                        return {}
                    data = await response.json()
        except Exception as e:
            logger.error("Error fetching prices from CoinGecko: %s", e)
            return {}

        prices: dict[str, float] = {}
        for coin_id, symbol in _IDS.items():
            usd = (data.get(coin_id) or {}).get("usd")
            if usd is not None:
                prices[symbol] = float(usd)

        self._cache.set("major", prices)
        logger.info("Fetched major prices from CoinGecko: %s", prices)
        return dict(prices)
