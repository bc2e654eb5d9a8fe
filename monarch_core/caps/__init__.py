"""VaultV2 cap identifiers, edit state and reconciliation."""
from .codec import (
    AdapterCapParams,
    CapId,
    CollateralCapParams,
    MarketCapParams,
    UnknownCapParams,
    get_adapter_cap_id,
    get_collateral_cap_id,
    get_market_cap_id,
    market_id,
    parse_cap_id_params,
)
from .edit_state import CapEditState, CollateralCapEdit, MarketCapEdit
from .partition import VaultCaps, partition_caps
from .reconcile import CapPlan, PlanStatus, apply_cap_updates, plan_cap_updates

__all__ = [
    "AdapterCapParams",
    "CapEditState",
    "CapId",
    "CapPlan",
    "CollateralCapEdit",
    "CollateralCapParams",
    "MarketCapEdit",
    "MarketCapParams",
    "PlanStatus",
    "UnknownCapParams",
    "VaultCaps",
    "apply_cap_updates",
    "get_adapter_cap_id",
    "get_collateral_cap_id",
    "get_market_cap_id",
    "market_id",
    "parse_cap_id_params",
    "partition_caps",
    "plan_cap_updates",
]
