"""Unit tests for the immutable cap edit state."""
from __future__ import annotations

from collections.abc import Callable

import pytest

from monarch_core.caps.codec import CapId, get_collateral_cap_id, get_market_cap_id
from monarch_core.caps.edit_state import CapEditState, CollateralCapEdit, MarketCapEdit
from monarch_core.caps.units import MAX_UINT128
from monarch_core.models import Market, VaultV2Cap
from monarch_core.tokens import TokenRegistry

from sample_data import ADAPTER, WBTC, WETH


def _cap(cap_id: CapId, relative: int, absolute: int) -> VaultV2Cap:
    return VaultV2Cap(
        cap_id=cap_id.id,
        id_params=cap_id.params,
        relative_cap=str(relative),
        absolute_cap=str(absolute),
    )


class TestFromExisting:
    def test_converts_units(
        self, make_market: Callable[..., Market], registry: TokenRegistry
    ) -> None:
        market = make_market()
        caps = [
            _cap(get_collateral_cap_id(WETH), 5 * 10**17, MAX_UINT128),
            _cap(get_market_cap_id(ADAPTER, market.market_params), 25 * 10**16, 1_000_000_000),
        ]
        state = CapEditState.from_existing(caps, [market], registry, 1, 6)

        collateral = state.collateral(WETH)
        assert collateral is not None
        assert collateral.relative_cap == "50"
        assert collateral.absolute_cap == ""
        assert collateral.existing_cap_id == caps[0].cap_id
        assert collateral.auto_created is False

        edit = state.market(market.unique_key)
        assert edit is not None
        assert edit.relative_cap == "25"
        assert edit.absolute_cap == "1000"
        assert edit.existing_cap_id == caps[1].cap_id

    def test_skips_zeroed_caps(
        self, make_market: Callable[..., Market], registry: TokenRegistry
    ) -> None:
        market = make_market()
        caps = [
            _cap(get_collateral_cap_id(WETH), 0, 0),
            _cap(get_market_cap_id(ADAPTER, market.market_params), 0, 0),
        ]
        state = CapEditState.from_existing(caps, [market], registry, 1, 6)
        assert state.collateral_caps == ()
        assert state.market_caps == ()

    def test_skips_market_caps_for_unknown_markets(
        self, make_market: Callable[..., Market], registry: TokenRegistry
    ) -> None:
        market = make_market()
        caps = [_cap(get_market_cap_id(ADAPTER, market.market_params), 10**18, MAX_UINT128)]
        state = CapEditState.from_existing(caps, [], registry, 1, 6)
        assert state.market_caps == ()

    def test_zero_absolute_flagged(
        self, make_market: Callable[..., Market], registry: TokenRegistry
    ) -> None:
        market = make_market()
        caps = [
            _cap(get_collateral_cap_id(WETH), 5 * 10**17, 0),
            _cap(get_market_cap_id(ADAPTER, market.market_params), 10**18, MAX_UINT128),
        ]
        state = CapEditState.from_existing(caps, [market], registry, 1, 6)

        collateral = state.collateral(WETH)
        assert collateral is not None
        assert collateral.absolute_cap == ""
        assert collateral.keep_zero_absolute is True
        edit = state.market(market.unique_key)
        assert edit is not None
        assert edit.keep_zero_absolute is False

    def test_absolute_edit_clears_zero_flag(
        self, make_market: Callable[..., Market], registry: TokenRegistry
    ) -> None:
        caps = [_cap(get_collateral_cap_id(WETH), 5 * 10**17, 0)]
        state = CapEditState.from_existing(caps, [], registry, 1, 6)

        relative_only = state.with_collateral_cap_value(WETH, relative_cap="60")
        edited = state.with_collateral_cap_value(WETH, absolute_cap="10")

        assert relative_only.collateral(WETH).keep_zero_absolute is True
        assert edited.collateral(WETH).keep_zero_absolute is False
        assert edited.collateral(WETH).absolute_cap == "10"


class TestEdits:
    def test_operations_return_new_state(self, make_market: Callable[..., Market]) -> None:
        state = CapEditState()
        added = state.with_markets_added([make_market()])
        assert state.market_caps == ()
        assert len(added.market_caps) == 1

    def test_adding_market_auto_creates_collateral(
        self, make_market: Callable[..., Market]
    ) -> None:
        state = CapEditState().with_markets_added([make_market()])
        collateral = state.collateral(WETH)
        assert collateral is not None
        assert collateral.auto_created is True
        assert collateral.relative_cap == "100"
        assert collateral.absolute_cap == ""

    def test_adding_market_reuses_existing_collateral(
        self, make_market: Callable[..., Market]
    ) -> None:
        state = CapEditState(collateral_caps=(CollateralCapEdit(WETH, relative_cap="40"),))
        state = state.with_markets_added([make_market()])
        assert len(state.collateral_caps) == 1
        assert state.collateral_caps[0].relative_cap == "40"

    def test_adding_same_market_twice_is_noop(self, make_market: Callable[..., Market]) -> None:
        market = make_market()
        state = CapEditState().with_markets_added([market]).with_markets_added([market])
        assert len(state.market_caps) == 1

    def test_remove_new_market_drops_auto_collateral(
        self, make_market: Callable[..., Market]
    ) -> None:
        market = make_market()
        state = CapEditState().with_markets_added([market])
        state = state.with_market_removed(market.unique_key)
        assert state.market_caps == ()
        assert state.collateral_caps == ()

    def test_remove_keeps_auto_collateral_still_in_use(
        self, make_market: Callable[..., Market]
    ) -> None:
        first = make_market()
        second = make_market(lltv=915000000000000000)
        state = CapEditState().with_markets_added([first, second])
        state = state.with_market_removed(first.unique_key)
        assert len(state.market_caps) == 1
        assert state.collateral(WETH) is not None

    def test_remove_existing_market_marks_removed(
        self, make_market: Callable[..., Market]
    ) -> None:
        market = make_market()
        state = CapEditState(
            market_caps=(MarketCapEdit(market=market, existing_cap_id="0xabc"),)
        )
        state = state.with_market_removed(market.unique_key)
        assert state.market_caps[0].removed is True
        assert state.active_market_caps() == ()

    def test_re_adding_removed_market_restores_it(
        self, make_market: Callable[..., Market]
    ) -> None:
        market = make_market()
        state = CapEditState(
            market_caps=(MarketCapEdit(market=market, existing_cap_id="0xabc", removed=True),)
        )
        state = state.with_markets_added([market])
        assert state.market_caps[0].removed is False

    def test_user_collateral_not_cleaned_up(self) -> None:
        state = CapEditState(collateral_caps=(CollateralCapEdit(WBTC),))
        assert state.without_unused_collaterals() is state

    def test_set_market_cap_value(self, make_market: Callable[..., Market]) -> None:
        market = make_market()
        state = CapEditState().with_markets_added([market])
        state = state.with_market_cap_value(market.unique_key, relative_cap="30")
        edit = state.market(market.unique_key)
        assert edit is not None
        assert edit.relative_cap == "30"
        assert edit.absolute_cap == ""

    def test_set_value_for_missing_market_raises(self) -> None:
        with pytest.raises(KeyError):
            CapEditState().with_market_cap_value("0xmissing", relative_cap="10")

    def test_set_collateral_value_adds_entry(self) -> None:
        state = CapEditState().with_collateral_cap_value(WBTC, "20", "5")
        collateral = state.collateral(WBTC.lower())
        assert collateral is not None
        assert (collateral.relative_cap, collateral.absolute_cap) == ("20", "5")
        assert collateral.auto_created is False

    def test_with_adapter_cap(self) -> None:
        state = CapEditState().with_adapter_cap("80", "1000")
        assert state.adapter_cap is not None
        assert state.adapter_cap.relative_cap == "80"
