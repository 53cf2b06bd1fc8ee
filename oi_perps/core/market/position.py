"""Position algebra and the per-market position store.

A position holds shares of its side's open-interest pool. Its current notional
is its pro-rata slice of the side OI, so funding (which moves side OI) is
reflected in every position without touching them individually.

Comparisons against prices are done by cross-multiplication on exact ints
(``value < threshold`` becomes ``lhs * entry < rhs * entry``); only the value
and price helpers round, and they round against the trader.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .errors import ValidationError
from .math import ONE, mul_down
from .types import Position

PositionKey = tuple[str, int]


@dataclass(frozen=True)
class Ratio:
    """A share ratio kept as an exact fraction."""

    numerator: int
    denominator: int

    def scale(self, x: int) -> int:
        """``x * numerator / denominator`` rounded down; 0 for an empty pool."""
        if self.denominator == 0:
            return 0
        return (x * self.numerator) // self.denominator


# -- Sizing ------------------------------------------------------------------

def notional_current(pos: Position, side_oi: int, side_shares: int) -> int:
    """Current notional: the position's slice of its side's OI."""
    return Ratio(side_oi, side_shares).scale(pos.oi_shares)


def shares_to_issue(notional: int, side_oi: int, side_shares: int) -> int:
    """Shares minted for *notional* of new OI (rounded down).

    Shares are issued at par on an empty side.
    """
    if side_shares == 0:
        return notional
    if side_oi == 0:
        raise ValidationError("side_oi_exhausted", "side has shares but no open interest")
    return Ratio(side_shares, side_oi).scale(notional)


def cost_basis(pos: Position) -> int:
    """Collateral backing the position: initial notional less debt."""
    return pos.notional_initial - pos.debt


# -- Valuation ---------------------------------------------------------------

def notional_with_pnl(
    pos: Position, side_oi: int, side_shares: int, price: int, cap_payoff: int
) -> int:
    """Current notional marked to *price*, long gains capped at ``cap_payoff``."""
    oi = notional_current(pos, side_oi, side_shares)
    if oi == 0 or pos.entry_price == 0:
        return 0
    if pos.is_long:
        marked = (oi * price) // pos.entry_price
        return min(marked, oi + mul_down(oi, cap_payoff))
    # short: oi * (2 - price / entry), price term rounded up
    loss = -((-oi * price) // pos.entry_price)
    return max(2 * oi - loss, 0)


def position_value(
    pos: Position, side_oi: int, side_shares: int, price: int, cap_payoff: int
) -> int:
    """Collateral plus PnL at *price*, floored at zero."""
    return max(notional_with_pnl(pos, side_oi, side_shares, price, cap_payoff) - pos.debt, 0)


# -- Risk predicates ---------------------------------------------------------

def is_underwater(pos: Position, side_oi: int, side_shares: int, price: int) -> bool:
    """True when the position's value is at or below zero (debt exceeds notional)."""
    oi = notional_current(pos, side_oi, side_shares)
    if oi == 0:
        return pos.debt > 0
    entry = pos.entry_price
    if pos.is_long:
        # price <= entry * debt / oi
        return price * oi <= entry * pos.debt
    # price >= entry * (2 - debt / oi)
    return oi * (2 * entry - price) <= entry * pos.debt


def is_liquidatable(
    pos: Position, side_oi: int, side_shares: int, price: int, maintenance_margin_fraction: int
) -> bool:
    """True when value is strictly below ``mmf * notional_initial``."""
    if pos.liquidated or pos.oi_shares == 0:
        return False
    oi = notional_current(pos, side_oi, side_shares)
    if oi == 0:
        return False
    entry = pos.entry_price
    required = maintenance_margin_fraction * pos.notional_initial + pos.debt * ONE
    if pos.is_long:
        return oi * price * ONE < entry * required
    return oi * (2 * entry - price) * ONE < entry * required


def liquidation_price(
    pos: Position, side_oi: int, side_shares: int, maintenance_margin_fraction: int
) -> int:
    """Price at which value reaches the maintenance requirement (0 when closed)."""
    if pos.liquidated or pos.oi_shares == 0:
        return 0
    oi = notional_current(pos, side_oi, side_shares)
    if oi == 0:
        return 0
    entry = pos.entry_price
    required = maintenance_margin_fraction * pos.notional_initial + pos.debt * ONE
    if pos.is_long:
        return (entry * required) // (oi * ONE)
    return max((entry * (2 * oi * ONE - required)) // (oi * ONE), 0)


# -- Store -------------------------------------------------------------------

class PositionLedger:
    """Positions of one market keyed by ``(owner, position_id)``."""

    def __init__(self) -> None:
        self._positions: dict[PositionKey, Position] = {}

    def get(self, owner: str, position_id: int) -> Position | None:
        return self._positions.get((owner, position_id))

    def get_open(self, owner: str, position_id: int) -> Position | None:
        """The position if it exists and still holds shares."""
        pos = self._positions.get((owner, position_id))
        if pos is None or not pos.is_open:
            return None
        return pos

    def put(self, owner: str, position_id: int, pos: Position) -> None:
        self._positions[(owner, position_id)] = pos

    def items(self) -> Iterator[tuple[PositionKey, Position]]:
        for key in sorted(self._positions):
            yield key, self._positions[key]

    def __contains__(self, key: object) -> bool:
        return key in self._positions

    def __len__(self) -> int:
        return len(self._positions)
