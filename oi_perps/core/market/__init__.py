"""`market`: open-interest perpetual market core.

- integer-only fixed-point arithmetic (18 decimals),
- immutable state (frozen dataclasses) committed by one controller per market,
- fail-clean entry points: guards and invariant checks run before settlement.

Public API:
- `MarketController` (update / build / unwind / liquidate / set_risk_param)
- `RiskParameters`, `RiskParam`, `RISK_PARAM_ORDER`
- pure helpers in `funding`, `position`, `pricing`, `roller`, `math`
"""

from .engine import MarketController
from .errors import (
    AccessDeniedError,
    ArithmeticOverflowError,
    DivisionDegenerateError,
    MarketError,
    MarketInvariantError,
    NotFoundError,
    NotLiquidatableError,
    PositionNotFoundError,
    SettlementError,
    ValidationError,
)
from .math import ONE
from .risk import RISK_PARAM_ORDER, RiskParam, RiskParameters
from .roller import Roller
from .state import initial_state, state_from_dict, state_to_dict
from .types import Effect, Event, MarketState, OracleData, Position

__all__ = [
    "MarketController",
    "ONE",
    "RISK_PARAM_ORDER",
    "RiskParam",
    "RiskParameters",
    "Roller",
    "initial_state",
    "state_from_dict",
    "state_to_dict",
    "Effect",
    "Event",
    "MarketState",
    "OracleData",
    "Position",
    "MarketError",
    "ValidationError",
    "NotFoundError",
    "PositionNotFoundError",
    "NotLiquidatableError",
    "AccessDeniedError",
    "ArithmeticOverflowError",
    "DivisionDegenerateError",
    "SettlementError",
    "MarketInvariantError",
]
