"""Funding: exponential decay of the long/short open-interest imbalance.

Funding moves open interest from the overweight side to the underweight side
so that ``|imbalance|`` decays as ``(1 - 2k)^dt`` while total OI is conserved
(up to rounding down on both sides).
"""

from __future__ import annotations

from .math import ONE, mul_down, pow_int


def funding_factor(k: int, dt: int) -> int:
    """``(1 - 2k)^dt`` in fixed point."""
    return pow_int(ONE - 2 * k, dt)


def oi_after_funding(
    k: int,
    oi_overweight: int,
    oi_underweight: int,
    timestamp_last: int,
    timestamp_now: int,
) -> tuple[int, int]:
    """Return ``(overweight', underweight')`` after ``timestamp_now - timestamp_last`` seconds.

    The caller decides which side is overweight; if it passes the lighter side
    first the signed imbalance decays all the same.
    """
    dt = timestamp_now - timestamp_last
    if dt < 0:
        raise ValueError(f"funding interval is negative: {dt}")
    if oi_overweight == 0 and oi_underweight == 0:
        return 0, 0

    total = oi_overweight + oi_underweight
    imbalance = oi_overweight - oi_underweight
    factor = funding_factor(k, dt)
    if imbalance >= 0:
        decayed = mul_down(imbalance, factor)
    else:
        decayed = -mul_down(-imbalance, factor)
    return (total + decayed) // 2, (total - decayed) // 2


def apply_funding(k: int, oi_long: int, oi_short: int, timestamp_last: int, timestamp_now: int) -> tuple[int, int]:
    """Funding for a long/short pair, returned as ``(oi_long', oi_short')``."""
    if oi_long >= oi_short:
        return oi_after_funding(k, oi_long, oi_short, timestamp_last, timestamp_now)
    short, long_ = oi_after_funding(k, oi_short, oi_long, timestamp_last, timestamp_now)
    return long_, short
