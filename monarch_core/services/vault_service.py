"""VaultV2 cap management: load, present and save a vault's caps."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..caps import (
    CapEditState,
    CapPlan,
    PlanStatus,
    VaultCaps,
    partition_caps,
    plan_cap_updates,
)
from ..caps.units import relative_cap_to_percent
from ..config import AppConfig, VaultConfig
from ..graphql import MorphoApiFetcher
from ..interfaces.executor import CapTransactionExecutor
from ..models import (
    CollateralAllocation,
    Market,
    MarketAllocation,
    TokenInfo,
    VaultV2Details,
)
from ..sources.morpho_api import MorphoApiSource
from ..tokens import TokenRegistry
from .market_service import MarketDataService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultOverview:
    """Everything needed to view and edit one vault's caps."""

    details: VaultV2Details
    caps: VaultCaps
    adapter: str | None
    markets: tuple[Market, ...]
    collateral_allocations: tuple[CollateralAllocation, ...]
    market_allocations: tuple[MarketAllocation, ...]
    edit_state: CapEditState


@dataclass(frozen=True)
class SaveResult:
    plan: CapPlan
    submitted: bool = False


def resolve_adapter(details: VaultV2Details, configured: str | None = None) -> str | None:
    """Pick the adapter whose caps are being managed.

    An explicitly configured adapter wins, then the vault's first listed
    adapter, then whatever adapter its existing caps name.
    """
    if configured:
        return configured
    if details.adapters:
        return details.adapters[0]

    for cap in partition_caps(details.caps).adapter_caps:
        return cap.params.adapter
    for cap in partition_caps(details.caps).market_caps:
        return cap.params.adapter
    return None


def build_allocations(
    details: VaultV2Details,
    markets: Iterable[Market],
    registry: TokenRegistry,
) -> tuple[tuple[CollateralAllocation, ...], tuple[MarketAllocation, ...]]:
    """Join the vault's caps with token metadata and market data.

    Collateral caps for tokens the registry does not know, and market caps
    for markets not in ``markets``, are left out.
    """
    vault_caps = partition_caps(details.caps)
    markets_by_id = {m.unique_key.lower(): m for m in markets}

    collaterals: list[CollateralAllocation] = []
    for entry in vault_caps.collateral_caps:
        token = registry.find_token(entry.collateral_token, details.chain_id)
        if token is None:
            logger.debug("Skipping collateral cap for unknown token %s", entry.collateral_token)
            continue
        collaterals.append(
            CollateralAllocation(
                collateral_address=entry.collateral_token,
                token=TokenInfo(
                    address=entry.collateral_token,
                    symbol=token.symbol,
                    decimals=token.decimals,
                    name=token.name,
                ),
                cap=entry.cap,
                relative_cap_percent=relative_cap_to_percent(entry.cap.relative_cap),
            )
        )

    market_allocations: list[MarketAllocation] = []
    for entry in vault_caps.market_caps:
        market = markets_by_id.get(entry.market_id.lower())
        if market is None:
            logger.debug("Skipping market cap for unknown market %s", entry.market_id)
            continue
        market_allocations.append(
            MarketAllocation(
                market=market,
                cap=entry.cap,
                relative_cap_percent=relative_cap_to_percent(entry.cap.relative_cap),
            )
        )

    return tuple(collaterals), tuple(market_allocations)


def apply_edit_document(
    state: CapEditState, document: dict[str, Any], markets: Iterable[Market]
) -> CapEditState:
    """Apply a declarative edit document (as loaded from YAML) to ``state``.

    Recognized keys: ``adapter_cap``, ``collateral_caps``, ``markets`` and
    ``remove_markets``. Raises ValueError for markets that are not known.
    """
    markets_by_id = {m.unique_key.lower(): m for m in markets}

    adapter = document.get("adapter_cap")
    if adapter:
        state = state.with_adapter_cap(
            str(adapter.get("relative_cap", "100")), str(adapter.get("absolute_cap") or "")
        )

    for entry in document.get("markets") or []:
        key = str(entry.get("unique_key") or "")
        market = markets_by_id.get(key.lower())
        if market is None:
            raise ValueError(f"Unknown market {key!r} for this vault")
        state = state.with_markets_added([market])
        state = state.with_market_cap_value(
            key,
            _optional_str(entry.get("relative_cap")),
            _optional_str(entry.get("absolute_cap")),
        )

    for entry in document.get("collateral_caps") or []:
        token = str(entry.get("collateral_token") or "")
        if not token:
            raise ValueError("collateral_caps entry without collateral_token")
        state = state.with_collateral_cap_value(
            token,
            _optional_str(entry.get("relative_cap")),
            _optional_str(entry.get("absolute_cap")),
        )

    for key in document.get("remove_markets") or []:
        state = state.with_market_removed(str(key))

    return state


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


class VaultService:
    """Orchestrates VaultV2 reads and cap saves."""

    def __init__(
        self,
        config: AppConfig,
        market_service: MarketDataService | None = None,
        api_source: MorphoApiSource | None = None,
        executor: CapTransactionExecutor | None = None,
    ) -> None:
        self._config = config
        self._markets = market_service or MarketDataService(config)
        self.registry = self._markets.registry
        self._api = api_source or MorphoApiSource(
            MorphoApiFetcher(config.fetcher), config.networks, self.registry
        )
        self._executor = executor

    def _supports_vaults(self, chain_id: int) -> bool:
        network = self._config.networks.get(chain_id)
        return network is not None and network.vaults_v2_supported

    def configured_vault(self, label: str) -> VaultConfig | None:
        for vault in self._config.vaults:
            if vault.label == label:
                return vault
        return None

    async def fetch_vault(self, address: str, chain_id: int) -> VaultV2Details | None:
        if not self._supports_vaults(chain_id):
            logger.warning("VaultV2 data is not available on chain %d", chain_id)
            return None
        return await self._api.fetch_vault_details(address, chain_id)

    async def fetch_owner_vaults(self, owner: str) -> list[VaultV2Details]:
        """Every V2 vault owned by ``owner`` across vault-enabled chains."""
        chain_ids = [c for c in self._config.networks if self._supports_vaults(c)]
        found = await self._api.fetch_owner_vault_addresses(owner, chain_ids)

        by_chain: dict[int, list[str]] = {}
        for address, chain_id in found:
            by_chain.setdefault(chain_id, []).append(address)

        results = await asyncio.gather(
            *(
                self._api.fetch_vault_details_many(addresses, chain_id)
                for chain_id, addresses in by_chain.items()
            )
        )
        return [vault for chain_vaults in results for vault in chain_vaults]

    async def load_overview(
        self, address: str, chain_id: int, adapter: str | None = None
    ) -> VaultOverview | None:
        details = await self.fetch_vault(address, chain_id)
        if details is None:
            return None

        markets = await self._markets.fetch_markets(chain_id)
        vault_markets = [
            m for m in markets if m.loan_asset.address.lower() == details.asset.lower()
        ]
        collaterals, market_allocations = build_allocations(
            details, vault_markets, self.registry
        )
        edit_state = CapEditState.from_existing(
            details.caps, vault_markets, self.registry, chain_id, details.asset_decimals
        )

        return VaultOverview(
            details=details,
            caps=partition_caps(details.caps),
            adapter=resolve_adapter(details, adapter),
            markets=tuple(vault_markets),
            collateral_allocations=collaterals,
            market_allocations=market_allocations,
            edit_state=edit_state,
        )

    def plan(
        self,
        details: VaultV2Details | None,
        desired: CapEditState,
        adapter: str | None = None,
    ) -> CapPlan:
        if details is None:
            return CapPlan(status=PlanStatus.MISSING_VAULT_DATA)
        return plan_cap_updates(
            details.caps,
            desired,
            resolve_adapter(details, adapter),
            details.asset,
            details.asset_decimals,
        )

    async def save_caps(
        self,
        details: VaultV2Details | None,
        desired: CapEditState,
        adapter: str | None = None,
    ) -> SaveResult:
        """Plan the mutations and hand a ready batch to the executor."""
        plan = self.plan(details, desired, adapter)
        for warning in plan.warnings:
            logger.warning("Cap plan warning: %s", warning)

        if not plan.ready or details is None:
            logger.info("Nothing submitted: plan status %s", plan.status.value)
            return SaveResult(plan=plan)
        if self._executor is None:
            logger.warning(
                "No transaction executor configured; %d mutation(s) not sent",
                len(plan.mutations),
            )
            return SaveResult(plan=plan)

        try:
            submitted = await self._executor.submit(
                details.chain_id, details.address, plan.mutations
            )
        except Exception as e:
            logger.error("Cap transaction for vault %s failed: %s", details.address, e)
            return SaveResult(plan=plan)

        if submitted:
            logger.info(
                "Submitted %d cap mutation(s) for vault %s", len(plan.mutations), details.address
            )
        return SaveResult(plan=plan, submitted=submitted)
