"""Quotes and open-interest caps derived from a feed snapshot.

Stateless: every function takes the risk parameters and an ``OracleData``
snapshot (and, where relevant, an already-rolled volume or minted value).

Rounding: bids round down and asks round up, so the spread never narrows in
the trader's favour.
"""

from __future__ import annotations

from .math import (
    MAX_NATURAL_EXPONENT,
    ONE,
    div_down,
    div_up,
    exp,
    mul_down,
    mul_up,
)
from .risk import RiskParameters
from .types import OracleData


# -- Quotes ------------------------------------------------------------------

def market_impact(lmbda: int, volume: int) -> int:
    """``1 - exp(-lmbda * volume)``, in ``[0, ONE]``."""
    return ONE - exp(-mul_down(lmbda, volume))


def bid(params: RiskParameters, data: OracleData, volume: int) -> int:
    """Price a trader receives when selling (short entry, long exit)."""
    spread = mul_down(data.price_micro, exp(-params.delta))
    return mul_down(spread, ONE - market_impact(params.lmbda, volume))


def ask(params: RiskParameters, data: OracleData, volume: int) -> int:
    """Price a trader pays when buying (long entry, short exit)."""
    spread = mul_up(data.price_micro, exp(params.delta))
    return mul_up(spread, ONE + market_impact(params.lmbda, volume))


def volume_fraction(notional: int, cap_notional: int) -> int:
    """Trade size as a fraction of the notional cap (rounded up).

    A zero cap (market closed to new risk) registers no volume.
    """
    if cap_notional == 0:
        return 0
    return div_up(notional, cap_notional)


def data_is_valid(params: RiskParameters, data: OracleData) -> bool:
    """True when the micro/macro price ratio is within the drift band.

    The band is ``exp(+-price_drift_upper_limit * macro_window)``.
    """
    if data.price_micro == 0 or data.price_macro == 0:
        return False
    drift = params.price_drift_upper_limit * data.macro_window
    if drift > MAX_NATURAL_EXPONENT:
        return True
    ratio = div_down(data.price_micro, data.price_macro)
    return exp(-drift) <= ratio <= exp(drift)


# -- Open interest caps ------------------------------------------------------

def circuit_breaker(params: RiskParameters, minted: int, cap: int) -> int:
    """Scale *cap* down linearly as recent net mint goes from target to 2x target."""
    target = params.circuit_breaker_mint_target
    if minted <= target:
        return cap
    if minted >= 2 * target:
        return 0
    return mul_down(cap, 2 * ONE - div_down(minted, target))


def front_run_bound(params: RiskParameters, data: OracleData) -> int:
    """OI above which a trade inside one micro window outruns the static spread."""
    return div_down(mul_down(params.delta, data.reserve_micro), params.lmbda)


def back_run_bound(params: RiskParameters, data: OracleData) -> int | None:
    """OI bound from back-running over the macro window, in blocks.

    ``None`` when the average block time is unknown (0).
    """
    if params.average_block_time == 0:
        return None
    blocks = div_down(data.macro_window, params.average_block_time)
    bound = mul_down(mul_down(2 * params.delta, data.reserve_micro), blocks)
    return div_down(bound, params.lmbda)


def cap_oi_adjusted(params: RiskParameters, data: OracleData, minted: int) -> int:
    """Effective per-side OI cap for new builds."""
    cap = params.cap_notional
    if data.has_reserve:
        cap = min(cap, front_run_bound(params, data))
        back = back_run_bound(params, data)
        if back is not None:
            cap = min(cap, back)
    return circuit_breaker(params, minted, cap)
