"""Guard functions for market entry points.

Each guard takes plain inputs and returns ``None`` when the call may proceed,
or a rejection reason string otherwise. The controller raises
``ValidationError(reason)`` on a rejection.
"""

from __future__ import annotations

from .math import ONE
from .risk import RiskParameters


def guard_build_inputs(params: RiskParameters, collateral: int, leverage: int) -> str | None:
    if collateral < params.min_collateral:
        return "collateral_below_min"
    if leverage < ONE:
        return "leverage_below_one"
    if leverage > params.cap_leverage:
        return "leverage_above_cap"
    return None


def guard_open_interest(side_oi: int, notional: int, cap: int) -> str | None:
    if side_oi + notional > cap:
        return "oi_above_cap"
    return None


def guard_entry_price(is_long: bool, price: int, price_limit: int) -> str | None:
    """Slippage on entry: longs pay at most, shorts receive at least, the limit."""
    if is_long and price > price_limit:
        return "slippage_above_limit"
    if not is_long and price < price_limit:
        return "slippage_above_limit"
    return None


def guard_exit_price(is_long: bool, price: int, price_limit: int) -> str | None:
    """Slippage on exit: longs sell at least, shorts buy back at most, the limit."""
    return guard_entry_price(not is_long, price, price_limit)


def guard_unwind_fraction(fraction: int) -> str | None:
    if fraction <= 0 or fraction > ONE:
        return "fraction_out_of_range"
    return None


def guard_timestamp(timestamp_last: int, now: int) -> str | None:
    if now < timestamp_last:
        return "timestamp_regressed"
    return None
