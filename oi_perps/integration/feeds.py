"""Reference price-feed adapter and a controllable clock.

``MockFeed`` returns an ``OracleData`` snapshot stamped with the clock's
current time. Prices and reserves are set directly; the same value is
reported for the micro and macro windows unless ``set_prices`` splits them.
"""

from __future__ import annotations

from oi_perps.core.market.types import OracleData


class ManualClock:
    """Wall clock advanced explicitly by tests and simulations."""

    def __init__(self, now: int = 0) -> None:
        self.now = now

    def advance(self, dt: int) -> int:
        if dt < 0:
            raise ValueError(f"clock cannot move backwards: {dt}")
        self.now += dt
        return self.now

    def set(self, timestamp: int) -> None:
        self.now = timestamp


class MockFeed:
    def __init__(
        self,
        micro_window: int,
        macro_window: int,
        price: int,
        reserve: int,
        *,
        clock: ManualClock,
        has_reserve: bool = True,
    ) -> None:
        self.micro_window = micro_window
        self.macro_window = macro_window
        self.price_micro = price
        self.price_macro = price
        self.reserve_micro = reserve
        self.reserve_macro = reserve
        self.has_reserve = has_reserve
        self.clock = clock

    def set_price(self, price: int) -> None:
        self.price_micro = price
        self.price_macro = price

    def set_prices(self, price_micro: int, price_macro: int) -> None:
        self.price_micro = price_micro
        self.price_macro = price_macro

    def set_reserve(self, reserve: int) -> None:
        self.reserve_micro = reserve
        self.reserve_macro = reserve

    def latest(self) -> OracleData:
        return OracleData(
            timestamp=self.clock.now,
            micro_window=self.micro_window,
            macro_window=self.macro_window,
            price_micro=self.price_micro,
            price_macro=self.price_macro,
            reserve_micro=self.reserve_micro,
            reserve_macro=self.reserve_macro,
            has_reserve=self.has_reserve,
        )
