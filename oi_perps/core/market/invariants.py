"""Invariant checkers for the market state.

Each function returns True when the invariant holds, and ``check_all()`` returns
the list of violated invariant IDs (empty = all pass). The controller runs
``check_all()`` on every post-state before committing it.
"""

from __future__ import annotations

from typing import Callable

from .math import INT256_MAX, UINT256_MAX
from .types import MarketState, Position


def inv_oi_non_negative(s: MarketState) -> bool:
    return 0 <= s.oi_long <= UINT256_MAX and 0 <= s.oi_short <= UINT256_MAX


def inv_shares_non_negative(s: MarketState) -> bool:
    return 0 <= s.oi_long_shares <= UINT256_MAX and 0 <= s.oi_short_shares <= UINT256_MAX


def inv_volume_non_negative(s: MarketState) -> bool:
    return 0 <= s.volume_bid.accumulator <= INT256_MAX and 0 <= s.volume_ask.accumulator <= INT256_MAX


def inv_rollers_not_from_future(s: MarketState) -> bool:
    t = s.timestamp_update_last
    return s.volume_bid.timestamp <= t and s.volume_ask.timestamp <= t and s.minted.timestamp <= t


def inv_position_id_non_negative(s: MarketState) -> bool:
    return s.next_position_id >= 0


INVARIANT_REGISTRY: dict[str, Callable[[MarketState], bool]] = {
    "oi_non_negative": inv_oi_non_negative,
    "shares_non_negative": inv_shares_non_negative,
    "volume_non_negative": inv_volume_non_negative,
    "rollers_not_from_future": inv_rollers_not_from_future,
    "position_id_non_negative": inv_position_id_non_negative,
}


def check_all(s: MarketState) -> list[str]:
    """Return IDs of every invariant that does not hold."""
    return [name for name, fn in INVARIANT_REGISTRY.items() if not fn(s)]


def check_position(pos: Position) -> list[str]:
    violations: list[str] = []
    if pos.liquidated and (pos.oi_shares != 0 or pos.debt != 0):
        violations.append("liquidated_position_zeroed")
    if pos.oi_shares < 0 or pos.debt < 0:
        violations.append("position_non_negative")
    if pos.debt > pos.notional_initial:
        violations.append("debt_within_notional")
    return violations
