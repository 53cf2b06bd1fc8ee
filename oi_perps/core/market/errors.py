"""Exception types for the market core.

Every entry point of ``MarketController`` either commits a complete transition
or raises one of these and leaves the market untouched.
"""

from __future__ import annotations


class MarketError(Exception):
    """Base class for all market failures."""


class ValidationError(MarketError):
    """Raised when an input, cap, slippage or drift check rejects a call."""

    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason = reason
        super().__init__(f"{reason}: {detail}" if detail else reason)


class NotFoundError(MarketError):
    """Raised when a keyed record does not exist."""


class PositionNotFoundError(NotFoundError):
    """Raised for a missing, foreign, unwound or already-liquidated position."""

    def __init__(self, owner: str, position_id: int) -> None:
        self.owner = owner
        self.position_id = position_id
        super().__init__(f"no open position {position_id} for {owner!r}")


class NotLiquidatableError(MarketError):
    """Raised when a liquidation targets a position above maintenance."""


class AccessDeniedError(MarketError):
    """Raised when a governance call comes from someone other than the governor."""


class ArithmeticOverflowError(MarketError, ArithmeticError):
    """Raised when a fixed-point result leaves the 256-bit range."""


class DivisionDegenerateError(MarketError, ZeroDivisionError):
    """Raised on a fixed-point division by zero."""


class MarketInvariantError(MarketError):
    """Raised when a post-state violates one or more invariants."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")


class SettlementError(MarketError):
    """Raised by a settlement token on insufficient balance, allowance or role."""
