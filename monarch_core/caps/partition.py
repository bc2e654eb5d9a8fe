"""Split a vault's flat cap list into the adapter → collateral → market tree."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..models import VaultV2Cap
from .codec import (
    AdapterCapParams,
    CollateralCapParams,
    MarketCapParams,
    parse_cap_id_params,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdapterCap:
    cap: VaultV2Cap
    params: AdapterCapParams


@dataclass(frozen=True)
class CollateralCap:
    cap: VaultV2Cap
    params: CollateralCapParams

    @property
    def collateral_token(self) -> str:
        return self.params.collateral_token


@dataclass(frozen=True)
class MarketCap:
    cap: VaultV2Cap
    params: MarketCapParams

    @property
    def market_id(self) -> str:
        return self.params.market_id


@dataclass(frozen=True)
class VaultCaps:
    adapter_caps: tuple[AdapterCap, ...] = ()
    collateral_caps: tuple[CollateralCap, ...] = ()
    market_caps: tuple[MarketCap, ...] = ()
    unknown_caps: tuple[VaultV2Cap, ...] = ()

    def adapter_cap(self, adapter_address: str | None = None) -> AdapterCap | None:
        """The cap for ``adapter_address``, or the first adapter cap if None."""
        for entry in self.adapter_caps:
            if adapter_address is None:
                return entry
            if entry.params.adapter.lower() == adapter_address.lower():
                return entry
        return None

    def collateral_cap(self, collateral_token: str) -> CollateralCap | None:
        token = collateral_token.lower()
        for entry in self.collateral_caps:
            if entry.collateral_token.lower() == token:
                return entry
        return None

    def market_cap(
        self,
        cap_id: str | None = None,
        market_unique_key: str | None = None,
        adapter: str | None = None,
    ) -> MarketCap | None:
        """Find a market cap by cap id, falling back to the market id.

        With ``adapter`` set, only caps held through that adapter match.
        """
        candidates = [
            entry
            for entry in self.market_caps
            if adapter is None or entry.params.adapter.lower() == adapter.lower()
        ]
        if cap_id:
            for entry in candidates:
                if entry.cap.cap_id.lower() == cap_id.lower():
                    return entry
        if market_unique_key:
            key = market_unique_key.lower()
            for entry in candidates:
                if entry.market_id.lower() == key:
                    return entry
        return None

    def orphaned_market_caps(self) -> tuple[MarketCap, ...]:
        """Market caps whose collateral token has no collateral cap."""
        covered = {c.collateral_token.lower() for c in self.collateral_caps}
        return tuple(
            m
            for m in self.market_caps
            if m.params.collateral_token.lower() not in covered
        )


def partition_caps(caps: Iterable[VaultV2Cap]) -> VaultCaps:
    adapters: list[AdapterCap] = []
    collaterals: list[CollateralCap] = []
    markets: list[MarketCap] = []
    unknown: list[VaultV2Cap] = []

    for cap in caps:
        parsed = parse_cap_id_params(cap.id_params)
        if isinstance(parsed, AdapterCapParams):
            adapters.append(AdapterCap(cap, parsed))
        elif isinstance(parsed, CollateralCapParams):
            collaterals.append(CollateralCap(cap, parsed))
        elif isinstance(parsed, MarketCapParams):
            markets.append(MarketCap(cap, parsed))
        else:
            logger.warning("Ignoring cap %s with unrecognized idParams", cap.cap_id)
            unknown.append(cap)

    return VaultCaps(
        adapter_caps=tuple(adapters),
        collateral_caps=tuple(collaterals),
        market_caps=tuple(markets),
        unknown_caps=tuple(unknown),
    )
