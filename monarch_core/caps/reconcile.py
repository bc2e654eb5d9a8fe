"""Cap reconciliation engine.

Turns a snapshot of a vault's on-chain caps plus a :class:`CapEditState`
into the ordered list of cap mutations needed to reach the edited state.
Only caps whose relative or absolute value actually changes are emitted;
each mutation carries the previous values alongside the new ones. Order
is always adapter, then collateral, then market caps.

Pure and synchronous: no I/O, no mutation of inputs.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from enum import Enum

from ..models import VaultV2Cap
from .codec import get_adapter_cap_id, get_collateral_cap_id, get_market_cap_id
from .edit_state import CapEditState, CollateralCapEdit, MarketCapEdit
from .partition import VaultCaps, partition_caps
from .units import (
    FULL_RELATIVE_CAP,
    MAX_UINT128,
    display_to_absolute_cap,
    percent_to_relative_cap,
)

logger = logging.getLogger(__name__)

ADAPTER_CAP_DEFAULTED = "adapter_cap_defaulted"
ORPHANED_MARKET_CAPS = "orphaned_market_caps"
LOAN_ASSET_MISMATCH = "market_loan_asset_mismatch"


class PlanStatus(str, Enum):
    READY = "ready"
    MISSING_VAULT_DATA = "missing_vault_data"
    NO_CHANGES = "no_changes"


@dataclass(frozen=True)
class CapPlan:
    status: PlanStatus
    mutations: tuple[VaultV2Cap, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def ready(self) -> bool:
        return self.status is PlanStatus.READY


def _int(value: str | None) -> int:
    return int(value or 0)


def _mutation(
    cap_id: str,
    id_params: str,
    new_relative: int,
    new_absolute: int,
    existing: VaultV2Cap | None,
) -> VaultV2Cap | None:
    """Build a mutation, or None when nothing changes."""
    old_relative = _int(existing.relative_cap) if existing else 0
    old_absolute = _int(existing.absolute_cap) if existing else 0
    if new_relative == old_relative and new_absolute == old_absolute:
        return None
    return VaultV2Cap(
        cap_id=cap_id,
        id_params=id_params,
        relative_cap=str(new_relative),
        absolute_cap=str(new_absolute),
        old_relative_cap=str(old_relative),
        old_absolute_cap=str(old_absolute),
    )


def _plan_adapter_cap(
    vault_caps: VaultCaps,
    desired: CapEditState,
    adapter_address: str,
    asset_decimals: int,
    warnings: list[str],
) -> VaultV2Cap | None:
    existing = vault_caps.adapter_cap(adapter_address)
    cap_id = get_adapter_cap_id(adapter_address)

    if desired.adapter_cap is not None:
        return _mutation(
            cap_id.id,
            cap_id.params,
            percent_to_relative_cap(desired.adapter_cap.relative_cap),
            display_to_absolute_cap(desired.adapter_cap.absolute_cap, asset_decimals),
            existing.cap if existing else None,
        )

    if existing is not None:
        return None

    logger.warning(
        "Adapter %s has no cap; defaulting to 100%% / unlimited", adapter_address
    )
    warnings.append(ADAPTER_CAP_DEFAULTED)
    return _mutation(cap_id.id, cap_id.params, FULL_RELATIVE_CAP, MAX_UINT128, None)


def _absolute(edit: CollateralCapEdit | MarketCapEdit, asset_decimals: int) -> int:
    if edit.keep_zero_absolute:
        return 0
    return display_to_absolute_cap(edit.absolute_cap, asset_decimals)


def _plan_collateral_cap(
    vault_caps: VaultCaps, edit: CollateralCapEdit, asset_decimals: int
) -> VaultV2Cap | None:
    cap_id = get_collateral_cap_id(edit.collateral_token)
    existing = vault_caps.collateral_cap(edit.collateral_token)
    return _mutation(
        cap_id.id,
        cap_id.params,
        percent_to_relative_cap(edit.relative_cap),
        _absolute(edit, asset_decimals),
        existing.cap if existing else None,
    )


def _plan_market_cap(
    vault_caps: VaultCaps,
    edit: MarketCapEdit,
    adapter_address: str,
    asset_decimals: int,
) -> VaultV2Cap | None:
    cap_id = get_market_cap_id(adapter_address, edit.market.market_params)
    # Caps held through other adapters are separate on-chain entries.
    existing = vault_caps.market_cap(
        cap_id=cap_id.id,
        market_unique_key=edit.market.unique_key,
        adapter=adapter_address,
    )

    if edit.removed:
        new_relative, new_absolute = 0, 0
    else:
        new_relative = percent_to_relative_cap(edit.relative_cap)
        new_absolute = _absolute(edit, asset_decimals)

    return _mutation(
        cap_id.id,
        cap_id.params,
        new_relative,
        new_absolute,
        existing.cap if existing else None,
    )


def plan_cap_updates(
    existing_caps: Sequence[VaultV2Cap],
    desired: CapEditState,
    adapter_address: str | None,
    vault_asset: str | None,
    asset_decimals: int,
) -> CapPlan:
    """Compute the ordered cap mutations that take ``existing_caps`` to ``desired``."""
    if not adapter_address or not vault_asset:
        logger.error(
            "Cannot plan cap updates: adapter=%r vault_asset=%r",
            adapter_address,
            vault_asset,
        )
        return CapPlan(status=PlanStatus.MISSING_VAULT_DATA)

    vault_caps = partition_caps(existing_caps)
    desired = desired.without_unused_collaterals()
    warnings: list[str] = []

    if vault_caps.orphaned_market_caps():
        warnings.append(ORPHANED_MARKET_CAPS)

    mutations: list[VaultV2Cap] = []

    adapter_mutation = _plan_adapter_cap(
        vault_caps, desired, adapter_address, asset_decimals, warnings
    )
    if adapter_mutation is not None:
        mutations.append(adapter_mutation)

    for collateral_edit in desired.collateral_caps:
        mutation = _plan_collateral_cap(vault_caps, collateral_edit, asset_decimals)
        if mutation is not None:
            mutations.append(mutation)

    for market_edit in desired.market_caps:
        loan_token = market_edit.market.loan_asset.address
        if loan_token.lower() != vault_asset.lower():
            logger.warning(
                "Skipping market %s: loan asset %s is not the vault asset %s",
                market_edit.market.unique_key,
                loan_token,
                vault_asset,
            )
            if LOAN_ASSET_MISMATCH not in warnings:
                warnings.append(LOAN_ASSET_MISMATCH)
            continue
        mutation = _plan_market_cap(
            vault_caps, market_edit, adapter_address, asset_decimals
        )
        if mutation is not None:
            mutations.append(mutation)

    if not mutations:
        logger.info("No cap changes to submit")
        return CapPlan(status=PlanStatus.NO_CHANGES, warnings=tuple(warnings))

    logger.info("Planned %d cap mutation(s)", len(mutations))
    return CapPlan(
        status=PlanStatus.READY, mutations=tuple(mutations), warnings=tuple(warnings)
    )


def apply_cap_updates(
    caps: Iterable[VaultV2Cap], mutations: Iterable[VaultV2Cap]
) -> tuple[VaultV2Cap, ...]:
    """Simulate submitting ``mutations`` against ``caps``.

    Updated caps keep their position; new caps are appended in mutation
    order. The ``old_*`` fields are cleared on the result.
    """
    result = list(caps)
    index = {cap.cap_id.lower(): i for i, cap in enumerate(result)}

    for mutation in mutations:
        applied = replace(mutation, old_relative_cap=None, old_absolute_cap=None)
        position = index.get(mutation.cap_id.lower())
        if position is None:
            index[mutation.cap_id.lower()] = len(result)
            result.append(applied)
        else:
            result[position] = applied

    return tuple(result)
