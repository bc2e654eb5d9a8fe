"""Unit tests for splitting vault caps by kind."""
from __future__ import annotations

from collections.abc import Callable

from monarch_core.caps.codec import (
    CapId,
    get_adapter_cap_id,
    get_collateral_cap_id,
    get_market_cap_id,
)
from monarch_core.caps.partition import partition_caps
from monarch_core.models import Market, VaultV2Cap

from sample_data import ADAPTER, WBTC, WETH


def _cap(cap_id: CapId) -> VaultV2Cap:
    return VaultV2Cap(cap_id=cap_id.id, id_params=cap_id.params, relative_cap="1")


class TestPartitionCaps:
    def test_groups_by_kind(self, make_market: Callable[..., Market]) -> None:
        market = make_market()
        caps = [
            _cap(get_market_cap_id(ADAPTER, market.market_params)),
            _cap(get_collateral_cap_id(WETH)),
            _cap(get_adapter_cap_id(ADAPTER)),
            VaultV2Cap(cap_id="0xdead", id_params="0x1234"),
        ]
        vault_caps = partition_caps(caps)

        assert len(vault_caps.adapter_caps) == 1
        assert len(vault_caps.collateral_caps) == 1
        assert len(vault_caps.market_caps) == 1
        assert vault_caps.unknown_caps == (caps[3],)
        assert vault_caps.market_caps[0].market_id.lower() == market.unique_key.lower()

    def test_lookups(self, make_market: Callable[..., Market]) -> None:
        market = make_market()
        market_cap = _cap(get_market_cap_id(ADAPTER, market.market_params))
        vault_caps = partition_caps(
            [_cap(get_adapter_cap_id(ADAPTER)), _cap(get_collateral_cap_id(WETH)), market_cap]
        )

        assert vault_caps.adapter_cap() is not None
        assert vault_caps.adapter_cap(ADAPTER.lower()) is not None
        assert vault_caps.adapter_cap("0x" + "00" * 20) is None
        assert vault_caps.collateral_cap(WETH.lower()) is not None
        assert vault_caps.collateral_cap(WBTC) is None

        by_id = vault_caps.market_cap(cap_id=market_cap.cap_id.upper().replace("0X", "0x"))
        by_market = vault_caps.market_cap(market_unique_key=market.unique_key)
        assert by_id is not None and by_market is not None
        assert by_id.cap is market_cap
        assert vault_caps.market_cap(cap_id="0xother") is None

    def test_market_cap_scoped_to_adapter(self, make_market: Callable[..., Market]) -> None:
        market = make_market()
        other_adapter = "0x" + "44" * 20
        foreign = _cap(get_market_cap_id(other_adapter, market.market_params))
        vault_caps = partition_caps([foreign])

        assert vault_caps.market_cap(market_unique_key=market.unique_key) is not None
        found = vault_caps.market_cap(
            market_unique_key=market.unique_key, adapter=other_adapter.upper()
        )
        assert found is not None and found.cap is foreign
        assert vault_caps.market_cap(market_unique_key=market.unique_key, adapter=ADAPTER) is None
        assert vault_caps.market_cap(cap_id=foreign.cap_id, adapter=ADAPTER) is None

    def test_orphaned_market_caps(self, make_market: Callable[..., Market]) -> None:
        covered = make_market(collateral=WETH)
        orphan = make_market(collateral=WBTC)
        vault_caps = partition_caps(
            [
                _cap(get_collateral_cap_id(WETH)),
                _cap(get_market_cap_id(ADAPTER, covered.market_params)),
                _cap(get_market_cap_id(ADAPTER, orphan.market_params)),
            ]
        )
        (entry,) = vault_caps.orphaned_market_caps()
        assert entry.params.collateral_token.lower() == WBTC.lower()

    def test_empty(self) -> None:
        vault_caps = partition_caps([])
        assert vault_caps.adapter_cap() is None
        assert vault_caps.orphaned_market_caps() == ()
