"""Tests for oi_perps/core/market/position.py: pro-rata notional, value and risk predicates."""

from dataclasses import replace

import pytest

from oi_perps.core.market import ONE, Position, ValidationError
from oi_perps.core.market.position import (
    PositionLedger,
    Ratio,
    cost_basis,
    is_liquidatable,
    is_underwater,
    liquidation_price,
    notional_current,
    position_value,
    shares_to_issue,
)

MMF = ONE // 10
CAP_PAYOFF = 5 * ONE
OI = 10 * ONE


def _position(is_long: bool = True, debt: int = 8 * ONE, **kwargs) -> Position:
    """Helper: entry 100, OI 10 held entirely by this position."""
    fields = dict(
        oi_shares=OI,
        debt=debt,
        is_long=is_long,
        liquidated=False,
        entry_price=100 * ONE,
        notional_initial=OI,
    )
    fields.update(kwargs)
    return Position(**fields)


class TestRatio:
    def test_scale(self):
        assert Ratio(3, 4).scale(100) == 75

    def test_empty_pool(self):
        assert Ratio(3, 0).scale(100) == 0


class TestSizing:
    def test_notional_current_pro_rata(self):
        pos = _position(oi_shares=4 * ONE)
        assert notional_current(pos, 9 * ONE, 10 * ONE) == 36 * ONE // 10

    def test_notional_current_empty_side(self):
        assert notional_current(_position(), 9 * ONE, 0) == 0

    def test_shares_at_par_on_empty_side(self):
        assert shares_to_issue(1000, 0, 0) == 1000

    def test_shares_after_funding(self):
        assert shares_to_issue(9 * ONE, 9 * ONE, 10 * ONE) == 10 * ONE

    def test_shares_on_exhausted_side(self):
        with pytest.raises(ValidationError) as exc:
            shares_to_issue(ONE, 0, 10 * ONE)
        assert exc.value.reason == "side_oi_exhausted"

    def test_cost_basis(self):
        assert cost_basis(_position()) == 2 * ONE


class TestLiquidationPrice:
    def test_long(self):
        assert liquidation_price(_position(True), OI, OI, MMF) == 90 * ONE

    def test_short(self):
        assert liquidation_price(_position(False), OI, OI, MMF) == 110 * ONE

    def test_leverage_one(self):
        assert liquidation_price(_position(True, debt=0), OI, OI, MMF) == 10 * ONE
        assert liquidation_price(_position(False, debt=0), OI, OI, MMF) == 190 * ONE

    def test_funding_reduced_oi(self):
        # long OI shrinks to 9: threshold 1 + debt 8 over 9
        assert liquidation_price(_position(True), 9 * ONE, OI, MMF) == 100 * ONE

    def test_closed_positions_return_zero(self):
        assert liquidation_price(_position(liquidated=True, oi_shares=0, debt=0), OI, OI, MMF) == 0
        assert liquidation_price(_position(oi_shares=0), OI, OI, MMF) == 0
        assert liquidation_price(_position(), OI, 0, MMF) == 0


class TestIsLiquidatable:
    def test_long_boundary_is_strict(self):
        pos = _position(True)
        assert not is_liquidatable(pos, OI, OI, 90 * ONE, MMF)
        assert is_liquidatable(pos, OI, OI, 90 * ONE - 1, MMF)

    def test_short_boundary_is_strict(self):
        pos = _position(False)
        assert not is_liquidatable(pos, OI, OI, 110 * ONE, MMF)
        assert is_liquidatable(pos, OI, OI, 110 * ONE + 1, MMF)

    def test_leverage_one_boundaries(self):
        assert not is_liquidatable(_position(True, debt=0), OI, OI, 10 * ONE, MMF)
        assert is_liquidatable(_position(True, debt=0), OI, OI, 10 * ONE - 1, MMF)
        assert not is_liquidatable(_position(False, debt=0), OI, OI, 190 * ONE, MMF)
        assert is_liquidatable(_position(False, debt=0), OI, OI, 190 * ONE + 1, MMF)

    def test_liquidated_never_liquidatable(self):
        pos = _position(liquidated=True, oi_shares=0, debt=0)
        assert not is_liquidatable(pos, OI, OI, ONE, MMF)

    def test_zero_notional_not_liquidatable(self):
        assert not is_liquidatable(_position(), 0, OI, ONE, MMF)


class TestIsUnderwater:
    def test_long_boundary(self):
        pos = _position(True)
        assert is_underwater(pos, OI, OI, 80 * ONE)
        assert not is_underwater(pos, OI, OI, 80 * ONE + 1)

    def test_short_boundary(self):
        pos = _position(False)
        assert is_underwater(pos, OI, OI, 120 * ONE)
        assert not is_underwater(pos, OI, OI, 120 * ONE - 1)

    def test_short_without_debt(self):
        pos = _position(False, debt=0)
        assert is_underwater(pos, OI, OI, 200 * ONE)
        assert not is_underwater(pos, OI, OI, 200 * ONE - 1)

    def test_long_without_debt(self):
        assert not is_underwater(_position(True, debt=0), OI, OI, 1)

    def test_zero_notional_with_debt(self):
        assert is_underwater(_position(), 0, OI, 100 * ONE)


class TestValue:
    def test_long_gain(self):
        assert position_value(_position(True), OI, OI, 110 * ONE, CAP_PAYOFF) == 3 * ONE

    def test_long_gain_capped(self):
        # notional capped at 10 * (1 + 5)
        assert position_value(_position(True), OI, OI, 1000 * ONE, CAP_PAYOFF) == 52 * ONE

    def test_short_gain(self):
        assert position_value(_position(False), OI, OI, 90 * ONE, CAP_PAYOFF) == 3 * ONE

    def test_floored_at_zero(self):
        assert position_value(_position(True), OI, OI, 50 * ONE, CAP_PAYOFF) == 0
        assert position_value(_position(False), OI, OI, 300 * ONE, CAP_PAYOFF) == 0


class TestLedger:
    def test_put_get(self):
        ledger = PositionLedger()
        pos = _position()
        ledger.put("alice", 0, pos)
        assert ledger.get("alice", 0) == pos
        assert ledger.get("bob", 0) is None
        assert ("alice", 0) in ledger
        assert len(ledger) == 1

    def test_get_open_skips_closed(self):
        ledger = PositionLedger()
        ledger.put("alice", 0, replace(_position(), oi_shares=0, debt=0, liquidated=True))
        ledger.put("alice", 1, replace(_position(), oi_shares=0))
        assert ledger.get_open("alice", 0) is None
        assert ledger.get_open("alice", 1) is None

    def test_items_sorted(self):
        ledger = PositionLedger()
        for owner, pid in (("bob", 2), ("alice", 1), ("alice", 0)):
            ledger.put(owner, pid, _position())
        assert [k for k, _ in ledger.items()] == [("alice", 0), ("alice", 1), ("bob", 2)]
