"""Data types for the market core.

All state types are frozen dataclasses; transitions build new instances with
``dataclasses.replace``.

Units/conventions:
- amounts, prices and rates are 18-decimal fixed-point ints (``ONE = 10**18``),
- timestamps and windows are integer seconds,
- ``*_shares`` are pro-rata claims on a side's open interest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Protocol

from .roller import Roller


@unique
class Event(Enum):
    """One member per controller effect type."""
    UPDATE = "Update"
    BUILD = "Build"
    UNWIND = "Unwind"
    LIQUIDATE = "Liquidate"
    SET_RISK_PARAM = "SetRiskParam"


@dataclass(frozen=True)
class OracleData:
    """Snapshot returned by a price feed, in wire tuple order."""

    timestamp: int
    micro_window: int
    macro_window: int
    price_micro: int
    price_macro: int
    reserve_micro: int
    reserve_macro: int
    has_reserve: bool

    def __post_init__(self) -> None:
        if self.micro_window <= 0 or self.macro_window < self.micro_window:
            raise ValueError(
                f"feed windows must satisfy 0 < micro <= macro, got {self.micro_window}/{self.macro_window}"
            )
        for name in ("price_micro", "price_macro", "reserve_micro", "reserve_macro"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    @classmethod
    def from_tuple(cls, values: tuple) -> OracleData:
        return cls(*values)

    def to_tuple(self) -> tuple:
        return (
            self.timestamp,
            self.micro_window,
            self.macro_window,
            self.price_micro,
            self.price_macro,
            self.reserve_micro,
            self.reserve_macro,
            self.has_reserve,
        )


@dataclass(frozen=True)
class Position:
    """A leveraged position, keyed by ``(owner, position_id)`` in the ledger."""

    oi_shares: int
    debt: int
    is_long: bool
    liquidated: bool
    entry_price: int
    notional_initial: int

    @property
    def is_open(self) -> bool:
        return self.oi_shares > 0 and not self.liquidated


@dataclass(frozen=True)
class MarketState:
    """Aggregate state of one market."""

    oi_long: int = 0
    oi_short: int = 0
    oi_long_shares: int = 0
    oi_short_shares: int = 0
    timestamp_update_last: int = 0

    volume_bid: Roller = field(default_factory=Roller)
    volume_ask: Roller = field(default_factory=Roller)
    minted: Roller = field(default_factory=Roller)

    next_position_id: int = 0

    def side_totals(self, is_long: bool) -> tuple[int, int]:
        """``(oi, shares)`` of one side."""
        if is_long:
            return self.oi_long, self.oi_long_shares
        return self.oi_short, self.oi_short_shares


@dataclass(frozen=True)
class Effect:
    """Observable record of a committed transition. Unused fields default to 0."""

    event: Event
    timestamp: int = 0
    sender: str = ""
    owner: str = ""
    position_id: int = 0
    price: int = 0
    mint: int = 0
    oi: int = 0
    debt: int = 0
    is_long: bool = False
    fraction: int = 0
    param: str = ""
    value: int = 0


class PriceFeed(Protocol):
    def latest(self) -> OracleData: ...


class SettlementToken(Protocol):
    def mint(self, sender: str, to: str, amount: int) -> None: ...

    def burn(self, sender: str, account: str, amount: int) -> None: ...

    def transfer(self, sender: str, to: str, amount: int) -> None: ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None: ...

    def balance_of(self, account: str) -> int: ...
