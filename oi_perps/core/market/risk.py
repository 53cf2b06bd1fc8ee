"""Risk parameters for a market.

The parameter order is load-bearing: governance tooling and the registry
address parameters by index, so ``RiskParam`` members, ``RISK_PARAM_ORDER``,
``RiskParameters`` fields and ``to_tuple()`` all follow the same sequence.

Units:
- rates and fractions are fixed-point (``ONE`` = 100%),
- ``cap_notional``, ``circuit_breaker_mint_target`` and ``min_collateral`` are
  token amounts (18 decimals),
- ``circuit_breaker_window`` and ``average_block_time`` are seconds,
- ``k`` and ``price_drift_upper_limit`` are per-second fixed-point rates.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum, unique
from typing import Any, Mapping, Sequence

from .errors import ValidationError
from .math import ONE, div_down


@unique
class RiskParam(Enum):
    """Wire names of the risk parameters, in index order."""
    K = "k"
    LMBDA = "lambda"
    DELTA = "delta"
    CAP_PAYOFF = "capPayoff"
    CAP_NOTIONAL = "capNotional"
    CAP_LEVERAGE = "capLeverage"
    CIRCUIT_BREAKER_WINDOW = "circuitBreakerWindow"
    CIRCUIT_BREAKER_MINT_TARGET = "circuitBreakerMintTarget"
    MAINTENANCE_MARGIN_FRACTION = "maintenanceMarginFraction"
    MAINTENANCE_MARGIN_BURN_RATE = "maintenanceMarginBurnRate"
    LIQUIDATION_FEE_RATE = "liquidationFeeRate"
    TRADING_FEE_RATE = "tradingFeeRate"
    MIN_COLLATERAL = "minCollateral"
    PRICE_DRIFT_UPPER_LIMIT = "priceDriftUpperLimit"
    AVERAGE_BLOCK_TIME = "averageBlockTime"


RISK_PARAM_ORDER: tuple[str, ...] = tuple(p.value for p in RiskParam)

# Inclusive (min, max) domain for each parameter.
RISK_PARAM_BOUNDS: dict[RiskParam, tuple[int, int]] = {
    RiskParam.K: (0, ONE // 2),
    RiskParam.LMBDA: (ONE // 100, 10 * ONE),
    RiskParam.DELTA: (10**14, 200 * 10**14),
    RiskParam.CAP_PAYOFF: (ONE, 100 * ONE),
    RiskParam.CAP_NOTIONAL: (0, 8_000_000 * ONE),
    RiskParam.CAP_LEVERAGE: (ONE, 20 * ONE),
    RiskParam.CIRCUIT_BREAKER_WINDOW: (86_400, 31_536_000),
    RiskParam.CIRCUIT_BREAKER_MINT_TARGET: (0, 8_000_000 * ONE),
    RiskParam.MAINTENANCE_MARGIN_FRACTION: (ONE // 100, ONE // 5),
    RiskParam.MAINTENANCE_MARGIN_BURN_RATE: (ONE // 100, ONE // 2),
    RiskParam.LIQUIDATION_FEE_RATE: (10**14, ONE // 5),
    RiskParam.TRADING_FEE_RATE: (10**14, 50 * 10**14),
    RiskParam.MIN_COLLATERAL: (10**14, ONE),
    RiskParam.PRICE_DRIFT_UPPER_LIMIT: (10**12, 10**14),
    RiskParam.AVERAGE_BLOCK_TIME: (0, 3600),
}


@dataclass(frozen=True)
class RiskParameters:
    k: int
    lmbda: int
    delta: int
    cap_payoff: int
    cap_notional: int
    cap_leverage: int
    circuit_breaker_window: int
    circuit_breaker_mint_target: int
    maintenance_margin_fraction: int
    maintenance_margin_burn_rate: int
    liquidation_fee_rate: int
    trading_fee_rate: int
    min_collateral: int
    price_drift_upper_limit: int
    average_block_time: int

    def __post_init__(self) -> None:
        for param, field_name in zip(RiskParam, _FIELD_NAMES):
            value = getattr(self, field_name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{param.value} must be int, got {type(value).__name__}")
            lo, hi = RISK_PARAM_BOUNDS[param]
            if not lo <= value <= hi:
                raise ValidationError(f"param_domain:{param.value}", f"{value} not in [{lo}, {hi}]")

    def to_tuple(self) -> tuple[int, ...]:
        return tuple(getattr(self, name) for name in _FIELD_NAMES)

    @classmethod
    def from_sequence(cls, values: Sequence[int]) -> RiskParameters:
        if len(values) != len(_FIELD_NAMES):
            raise ValidationError("param_count", f"expected {len(_FIELD_NAMES)} values, got {len(values)}")
        return cls(*values)

    def to_mapping(self) -> dict[str, int]:
        return dict(zip(RISK_PARAM_ORDER, self.to_tuple()))

    @classmethod
    def from_mapping(cls, m: Mapping[str, Any]) -> RiskParameters:
        """Build from wire names. Raises KeyError on a missing name."""
        unknown = sorted(set(m) - set(RISK_PARAM_ORDER))
        if unknown:
            raise ValidationError("param_unknown", ", ".join(unknown))
        return cls(*(m[name] for name in RISK_PARAM_ORDER))

    def get(self, param: RiskParam) -> int:
        return getattr(self, _FIELD_BY_PARAM[param])

    def replace_param(self, param: RiskParam, value: int) -> RiskParameters:
        """Return a copy with one parameter changed (bounds re-checked)."""
        return replace(self, **{_FIELD_BY_PARAM[param]: value})


_FIELD_NAMES: tuple[str, ...] = tuple(f.name for f in fields(RiskParameters))
_FIELD_BY_PARAM: dict[RiskParam, str] = dict(zip(RiskParam, _FIELD_NAMES))


def max_cap_leverage(params: RiskParameters) -> int:
    """Largest leverage at which a fresh position sits above maintenance after
    paying the spread and the liquidation fee:
    ``1 / (2*delta + mmf / (1 - liquidation_fee_rate))``.
    """
    margin = div_down(params.maintenance_margin_fraction, ONE - params.liquidation_fee_rate)
    return div_down(ONE, 2 * params.delta + margin)


def leverage_consistency_warnings(params: RiskParameters) -> list[str]:
    """Cross-parameter checks the market itself never enforces."""
    warnings: list[str] = []
    limit = max_cap_leverage(params)
    if params.cap_leverage > limit:
        warnings.append(f"capLeverage {params.cap_leverage} exceeds maintenance-safe maximum {limit}")
    if params.circuit_breaker_mint_target == 0:
        warnings.append("circuitBreakerMintTarget is 0: any net mint saturates the breaker")
    return warnings
