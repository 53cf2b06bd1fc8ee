"""Fail-closed loader for the YAML market registry.

Layout (schema ``oi-perps/markets/v1``)::

    schema: oi-perps/markets/v1
    markets:
      ETH-USD:
        networks: [arbitrum-mainnet]
        feed: {micro_window: 600, macro_window: 3600}
        risk_params: {k: 1220000000000, lambda: 500000000000000000, ...}

Risk parameter values are ints, or strings in decimal/scientific notation
(``"0.0122e14"``) that must denote an integer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable

import yaml

from oi_perps.core.market.errors import ValidationError
from oi_perps.core.market.risk import RISK_PARAM_ORDER, RiskParameters, leverage_consistency_warnings

logger = logging.getLogger(__name__)

SCHEMA = "oi-perps/markets/v1"


class ConfigError(Exception):
    """Registry file does not match the expected layout."""


@dataclass(frozen=True)
class MarketConfig:
    name: str
    networks: tuple[str, ...]
    micro_window: int
    macro_window: int
    risk_params: tuple[int, ...]

    def risk_parameters(self) -> RiskParameters:
        return RiskParameters.from_sequence(self.risk_params)


def _require_mapping(obj: Any, *, name: str) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise ConfigError(f"{name} must be an object")
    return obj


def _require_str_list(obj: Any, *, name: str) -> list[str]:
    if not isinstance(obj, list) or not obj:
        raise ConfigError(f"{name} must be a non-empty list")
    out: list[str] = []
    for i, it in enumerate(obj):
        if not isinstance(it, str) or not it.strip():
            raise ConfigError(f"{name}[{i}] must be a non-empty string")
        out.append(it.strip())
    return out


def _require_int(obj: Any, *, name: str) -> int:
    if isinstance(obj, bool):
        raise ConfigError(f"{name} must be an integer")
    if isinstance(obj, int):
        return obj
    if isinstance(obj, str):
        try:
            value = Decimal(obj.replace("_", ""))
        except InvalidOperation:
            raise ConfigError(f"{name} is not a number: {obj!r}") from None
        if value != value.to_integral_value():
            raise ConfigError(f"{name} must denote an integer: {obj!r}")
        return int(value)
    raise ConfigError(f"{name} must be an integer")


def _parse_market(name: str, obj: Any) -> MarketConfig:
    market = _require_mapping(obj, name=f"markets.{name}")
    networks = _require_str_list(market.get("networks"), name=f"markets.{name}.networks")

    feed = _require_mapping(market.get("feed"), name=f"markets.{name}.feed")
    micro = _require_int(feed.get("micro_window"), name=f"markets.{name}.feed.micro_window")
    macro = _require_int(feed.get("macro_window"), name=f"markets.{name}.feed.macro_window")
    if not 0 < micro <= macro:
        raise ConfigError(f"markets.{name}.feed windows must satisfy 0 < micro_window <= macro_window")

    raw = _require_mapping(market.get("risk_params"), name=f"markets.{name}.risk_params")
    unknown = sorted(set(raw) - set(RISK_PARAM_ORDER))
    if unknown:
        raise ConfigError(f"markets.{name}.risk_params has unknown keys: {', '.join(unknown)}")
    missing = [p for p in RISK_PARAM_ORDER if p not in raw]
    if missing:
        raise ConfigError(f"markets.{name}.risk_params missing: {', '.join(missing)}")
    values = tuple(_require_int(raw[p], name=f"markets.{name}.risk_params.{p}") for p in RISK_PARAM_ORDER)

    cfg = MarketConfig(name=name, networks=tuple(networks), micro_window=micro, macro_window=macro, risk_params=values)
    try:
        params = cfg.risk_parameters()
    except ValidationError as exc:
        raise ConfigError(f"markets.{name}.risk_params: {exc}") from exc
    for warning in leverage_consistency_warnings(params):
        logger.warning("market %s: %s", name, warning)
    return cfg


def load_market_registry(path: Path) -> dict[str, MarketConfig]:
    """Parse and validate a registry file; raises ConfigError on any defect."""
    root = _require_mapping(yaml.safe_load(path.read_text(encoding="utf-8")), name="registry")
    schema = root.get("schema")
    if schema != SCHEMA:
        raise ConfigError(f"unsupported registry.schema: {schema}")
    markets = _require_mapping(root.get("markets"), name="registry.markets")
    registry = {str(name): _parse_market(str(name), obj) for name, obj in markets.items()}
    logger.info("loaded %d market(s) from %s", len(registry), path)
    return registry


def filter_by_network(registry: dict[str, MarketConfig], networks: Iterable[str]) -> dict[str, MarketConfig]:
    """Markets deployed on any of *networks*."""
    wanted = set(networks)
    return {name: cfg for name, cfg in registry.items() if wanted.intersection(cfg.networks)}
