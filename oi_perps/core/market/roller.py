"""Rolling accumulator with linear decay over a variable window.

A ``Roller`` stores ``(timestamp, window, accumulator)``. The accumulator decays
linearly to zero over ``window`` seconds; decay is evaluated lazily whenever
the value is read or updated, so nothing has to run on a schedule.

Used for per-side trade volume (window = feed micro window) and for net token
issuance (window = circuit breaker window).
"""

from __future__ import annotations

from dataclasses import dataclass

from .math import check_int256, trunc_div


@dataclass(frozen=True)
class Roller:
    timestamp: int = 0
    window: int = 0
    accumulator: int = 0

    def value_at(self, now: int) -> int:
        """Decayed accumulator at *now* (no mutation)."""
        dt = now - self.timestamp
        if dt < 0:
            raise ValueError(f"roller read at {now} before last update {self.timestamp}")
        if self.window == 0 or dt >= self.window:
            return 0
        return trunc_div(self.accumulator * (self.window - dt), self.window)

    def update(self, now: int, window_new: int, delta: int) -> Roller:
        """Decay to *now*, add *delta*, and blend the windows by magnitude.

        The new window is the magnitude-weighted average of the remaining old
        window and ``window_new``.
        """
        if window_new < 0:
            raise ValueError(f"window must be >= 0, got {window_new}")
        decayed = self.value_at(now)
        value = check_int256(decayed + delta)

        abs_decayed = abs(decayed)
        abs_delta = abs(delta)
        if abs_decayed + abs_delta == 0:
            window = window_new
        else:
            # decayed != 0 implies dt < window, so the remaining window is positive
            remaining = self.window - (now - self.timestamp) if abs_decayed else 0
            window = (remaining * abs_decayed + window_new * abs_delta) // (abs_decayed + abs_delta)
        return Roller(timestamp=now, window=window, accumulator=value)
