"""State construction and serialization for the market core.

Round-trip property (tested): ``state_from_dict(state_to_dict(s)) == s``.
Rollers serialize as nested ``{"timestamp", "window", "accumulator"}`` mappings.
"""

from __future__ import annotations

from typing import Any, Mapping

from .roller import Roller
from .types import MarketState

STATE_VAR_NAMES: tuple[str, ...] = tuple(MarketState.__dataclass_fields__)
ROLLER_VAR_NAMES: tuple[str, ...] = tuple(Roller.__dataclass_fields__)
_ROLLER_FIELDS = frozenset({"volume_bid", "volume_ask", "minted"})


def initial_state(timestamp: int = 0) -> MarketState:
    """Empty market whose funding clock starts at *timestamp*."""
    return MarketState(timestamp_update_last=timestamp)


def state_to_dict(state: MarketState) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in STATE_VAR_NAMES:
        val = getattr(state, name)
        if name in _ROLLER_FIELDS:
            out[name] = {f: getattr(val, f) for f in ROLLER_VAR_NAMES}
        else:
            out[name] = val
    return out


def _int_field(name: str, val: Any) -> int:
    if isinstance(val, bool) or not isinstance(val, int):
        raise TypeError(f"state var {name!r} must be int, got {type(val).__name__}")
    return int(val)


def state_from_dict(d: Mapping[str, Any]) -> MarketState:
    """Deserialize a dict to a MarketState. Raises KeyError on missing fields."""
    kwargs: dict[str, Any] = {}
    for name in STATE_VAR_NAMES:
        val = d[name]
        if name in _ROLLER_FIELDS:
            if not isinstance(val, Mapping):
                raise TypeError(f"state var {name!r} must be a mapping, got {type(val).__name__}")
            kwargs[name] = Roller(**{f: _int_field(f"{name}.{f}", val[f]) for f in ROLLER_VAR_NAMES})
        else:
            kwargs[name] = _int_field(name, val)
    return MarketState(**kwargs)
