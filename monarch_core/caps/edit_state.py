"""Immutable edit state for a vault's collateral and market caps.

Values are user-facing strings: relative caps as a percent (``"75"``),
absolute caps in asset units with ``""`` meaning unlimited. Every
operation returns a new :class:`CapEditState`.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from ..interfaces.token_lookup import TokenLookup
from ..models import Market, VaultV2Cap
from .partition import partition_caps
from .units import absolute_cap_to_display, relative_cap_to_percent

logger = logging.getLogger(__name__)

DEFAULT_RELATIVE_PERCENT = "100"
UNLIMITED = ""


@dataclass(frozen=True)
class AdapterCapEdit:
    relative_cap: str = DEFAULT_RELATIVE_PERCENT
    absolute_cap: str = UNLIMITED


@dataclass(frozen=True)
class CollateralCapEdit:
    collateral_token: str
    relative_cap: str = DEFAULT_RELATIVE_PERCENT
    absolute_cap: str = UNLIMITED
    existing_cap_id: str | None = None
    auto_created: bool = False
    keep_zero_absolute: bool = False

    @property
    def key(self) -> str:
        return self.collateral_token.lower()


@dataclass(frozen=True)
class MarketCapEdit:
    market: Market
    relative_cap: str = DEFAULT_RELATIVE_PERCENT
    absolute_cap: str = UNLIMITED
    existing_cap_id: str | None = None
    removed: bool = False
    keep_zero_absolute: bool = False

    @property
    def key(self) -> str:
        return self.market.unique_key.lower()

    @property
    def collateral_key(self) -> str:
        return self.market.collateral_asset.address.lower()


def _is_zeroed(cap: VaultV2Cap) -> bool:
    return int(cap.relative_cap or 0) == 0 and int(cap.absolute_cap or 0) == 0


def _zero_absolute(cap: VaultV2Cap) -> bool:
    return int(cap.absolute_cap or 0) == 0


@dataclass(frozen=True)
class CapEditState:
    collateral_caps: tuple[CollateralCapEdit, ...] = ()
    market_caps: tuple[MarketCapEdit, ...] = ()
    adapter_cap: AdapterCapEdit | None = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_existing(
        cls,
        caps: Iterable[VaultV2Cap],
        markets: Iterable[Market],
        tokens: TokenLookup,
        chain_id: int,
        asset_decimals: int,
    ) -> CapEditState:
        """Seed the edit state from on-chain caps.

        Market caps are included only when their market is among ``markets``;
        fully zeroed caps are treated as removed and left out. A cap whose
        absolute value is 0 displays as blank but keeps 0 until it is edited.
        """
        vault_caps = partition_caps(caps)
        markets_by_id = {m.unique_key.lower(): m for m in markets}

        collaterals: list[CollateralCapEdit] = []
        for entry in vault_caps.collateral_caps:
            if _is_zeroed(entry.cap):
                continue
            if tokens.find_token(entry.collateral_token, chain_id) is None:
                logger.debug("Collateral cap for unknown token %s", entry.collateral_token)
            collaterals.append(
                CollateralCapEdit(
                    collateral_token=entry.collateral_token,
                    relative_cap=relative_cap_to_percent(entry.cap.relative_cap),
                    absolute_cap=absolute_cap_to_display(
                        entry.cap.absolute_cap, asset_decimals
                    ),
                    existing_cap_id=entry.cap.cap_id,
                    keep_zero_absolute=_zero_absolute(entry.cap),
                )
            )

        market_edits: list[MarketCapEdit] = []
        for entry in vault_caps.market_caps:
            if _is_zeroed(entry.cap):
                continue
            market = markets_by_id.get(entry.market_id.lower())
            if market is None:
                logger.warning(
                    "Market cap %s references unknown market %s",
                    entry.cap.cap_id,
                    entry.market_id,
                )
                continue
            market_edits.append(
                MarketCapEdit(
                    market=market,
                    relative_cap=relative_cap_to_percent(entry.cap.relative_cap),
                    absolute_cap=absolute_cap_to_display(
                        entry.cap.absolute_cap, asset_decimals
                    ),
                    existing_cap_id=entry.cap.cap_id,
                    keep_zero_absolute=_zero_absolute(entry.cap),
                )
            )

        return cls(collateral_caps=tuple(collaterals), market_caps=tuple(market_edits))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def collateral(self, collateral_token: str) -> CollateralCapEdit | None:
        key = collateral_token.lower()
        for edit in self.collateral_caps:
            if edit.key == key:
                return edit
        return None

    def market(self, unique_key: str) -> MarketCapEdit | None:
        key = unique_key.lower()
        for edit in self.market_caps:
            if edit.key == key:
                return edit
        return None

    def active_market_caps(self) -> tuple[MarketCapEdit, ...]:
        return tuple(m for m in self.market_caps if not m.removed)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def with_adapter_cap(self, relative_cap: str, absolute_cap: str = UNLIMITED) -> CapEditState:
        return replace(self, adapter_cap=AdapterCapEdit(relative_cap, absolute_cap))

    def with_markets_added(self, markets: Iterable[Market]) -> CapEditState:
        """Add markets at 100%/unlimited, creating collateral caps as needed."""
        collaterals = list(self.collateral_caps)
        market_edits = list(self.market_caps)

        for market in markets:
            key = market.unique_key.lower()
            index = next((i for i, m in enumerate(market_edits) if m.key == key), None)
            if index is not None:
                if market_edits[index].removed:
                    market_edits[index] = replace(market_edits[index], removed=False)
                continue

            market_edits.append(MarketCapEdit(market=market))

            collateral_key = market.collateral_asset.address.lower()
            if not any(c.key == collateral_key for c in collaterals):
                collaterals.append(
                    CollateralCapEdit(
                        collateral_token=market.collateral_asset.address,
                        auto_created=True,
                    )
                )

        return replace(
            self, collateral_caps=tuple(collaterals), market_caps=tuple(market_edits)
        )

    def with_market_removed(self, unique_key: str) -> CapEditState:
        """Drop a new market cap, or zero an existing one on save.

        Auto-created collateral caps left without any market are dropped.
        """
        key = unique_key.lower()
        market_edits: list[MarketCapEdit] = []
        for edit in self.market_caps:
            if edit.key != key:
                market_edits.append(edit)
            elif edit.existing_cap_id:
                market_edits.append(replace(edit, removed=True))
        return replace(self, market_caps=tuple(market_edits)).without_unused_collaterals()

    def with_market_cap_value(
        self,
        unique_key: str,
        relative_cap: str | None = None,
        absolute_cap: str | None = None,
    ) -> CapEditState:
        key = unique_key.lower()
        if self.market(unique_key) is None:
            raise KeyError(f"No market cap edit for {unique_key}")
        return replace(
            self,
            market_caps=tuple(
                _with_values(edit, relative_cap, absolute_cap) if edit.key == key else edit
                for edit in self.market_caps
            ),
        )

    def with_collateral_cap_value(
        self,
        collateral_token: str,
        relative_cap: str | None = None,
        absolute_cap: str | None = None,
    ) -> CapEditState:
        """Set a collateral cap, adding an entry for the token if absent."""
        key = collateral_token.lower()
        if self.collateral(collateral_token) is None:
            edit = _with_values(
                CollateralCapEdit(collateral_token=collateral_token),
                relative_cap,
                absolute_cap,
            )
            return replace(self, collateral_caps=self.collateral_caps + (edit,))
        return replace(
            self,
            collateral_caps=tuple(
                _with_values(edit, relative_cap, absolute_cap) if edit.key == key else edit
                for edit in self.collateral_caps
            ),
        )

    def without_unused_collaterals(self) -> CapEditState:
        """Remove auto-created collateral caps that no active market uses."""
        used = {m.collateral_key for m in self.active_market_caps()}
        kept = tuple(
            c for c in self.collateral_caps if not c.auto_created or c.key in used
        )
        if len(kept) == len(self.collateral_caps):
            return self
        return replace(self, collateral_caps=kept)


def _with_values(edit, relative_cap: str | None, absolute_cap: str | None):
    changes: dict[str, str | bool] = {}
    if relative_cap is not None:
        changes["relative_cap"] = relative_cap
    if absolute_cap is not None:
        changes["absolute_cap"] = absolute_cap
        changes["keep_zero_absolute"] = False
    return replace(edit, **changes) if changes else edit
