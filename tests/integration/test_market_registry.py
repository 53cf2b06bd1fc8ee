"""Tests for oi_perps/integration/config.py: YAML market registry."""

import logging
from pathlib import Path

import pytest
import yaml

from oi_perps.core.market import ONE, RISK_PARAM_ORDER, RiskParameters
from oi_perps.integration.config import ConfigError, filter_by_network, load_market_registry

from tests.market_domain import DEFAULT_RISK_PARAMS

REPO_ROOT = Path(__file__).resolve().parents[2]
EXAMPLE_REGISTRY = REPO_ROOT / "config" / "markets.yaml"


def _registry(risk_params=None, **market_overrides) -> dict:
    market = {
        "networks": ["arbitrum-mainnet"],
        "feed": {"micro_window": 600, "macro_window": 3600},
        "risk_params": dict(zip(RISK_PARAM_ORDER, DEFAULT_RISK_PARAMS)) if risk_params is None else risk_params,
    }
    market.update(market_overrides)
    return {"schema": "oi-perps/markets/v1", "markets": {"ETH-DAI": market}}


def _write(tmp_path: Path, obj) -> Path:
    path = tmp_path / "markets.yaml"
    path.write_text(yaml.safe_dump(obj), encoding="utf-8")
    return path


class TestExampleRegistry:
    def test_loads(self):
        registry = load_market_registry(EXAMPLE_REGISTRY)
        assert set(registry) == {"ETH-DAI", "WBTC-ETH"}

    def test_eth_dai_matches_reference_params(self):
        cfg = load_market_registry(EXAMPLE_REGISTRY)["ETH-DAI"]
        assert cfg.risk_params == DEFAULT_RISK_PARAMS
        assert (cfg.micro_window, cfg.macro_window) == (600, 3600)

    def test_scientific_strings(self):
        cfg = load_market_registry(EXAMPLE_REGISTRY)["WBTC-ETH"]
        params = cfg.risk_parameters()
        assert isinstance(params, RiskParameters)
        assert params.k == 1220000000000
        assert params.lmbda == ONE
        assert params.circuit_breaker_mint_target == 66670 * ONE
        assert params.trading_fee_rate == 750000000000000

    def test_filter_by_network(self):
        registry = load_market_registry(EXAMPLE_REGISTRY)
        assert set(filter_by_network(registry, ["arbitrum-mainnet"])) == {"ETH-DAI"}
        assert set(filter_by_network(registry, ["arbitrum-testnet"])) == {"ETH-DAI", "WBTC-ETH"}
        assert filter_by_network(registry, ["ethereum"]) == {}


class TestFailClosed:
    def test_wrong_schema(self, tmp_path):
        obj = _registry()
        obj["schema"] = "v0"
        with pytest.raises(ConfigError, match="schema"):
            load_market_registry(_write(tmp_path, obj))

    def test_missing_param(self, tmp_path):
        params = dict(zip(RISK_PARAM_ORDER, DEFAULT_RISK_PARAMS))
        del params["delta"]
        with pytest.raises(ConfigError, match="missing: delta"):
            load_market_registry(_write(tmp_path, _registry(params)))

    def test_unknown_param(self, tmp_path):
        params = dict(zip(RISK_PARAM_ORDER, DEFAULT_RISK_PARAMS), gamma=1)
        with pytest.raises(ConfigError, match="unknown keys: gamma"):
            load_market_registry(_write(tmp_path, _registry(params)))

    def test_fractional_value(self, tmp_path):
        params = dict(zip(RISK_PARAM_ORDER, DEFAULT_RISK_PARAMS), averageBlockTime="1.5")
        with pytest.raises(ConfigError, match="integer"):
            load_market_registry(_write(tmp_path, _registry(params)))

    def test_out_of_bounds(self, tmp_path):
        params = dict(zip(RISK_PARAM_ORDER, DEFAULT_RISK_PARAMS), capLeverage=50 * ONE)
        with pytest.raises(ConfigError, match="capLeverage"):
            load_market_registry(_write(tmp_path, _registry(params)))

    def test_bad_windows(self, tmp_path):
        obj = _registry(feed={"micro_window": 3600, "macro_window": 600})
        with pytest.raises(ConfigError, match="windows"):
            load_market_registry(_write(tmp_path, obj))

    def test_empty_networks(self, tmp_path):
        with pytest.raises(ConfigError, match="networks"):
            load_market_registry(_write(tmp_path, _registry(networks=[])))


def test_inconsistent_leverage_is_logged(tmp_path, caplog):
    params = dict(zip(RISK_PARAM_ORDER, DEFAULT_RISK_PARAMS), capLeverage=20 * ONE)
    with caplog.at_level(logging.WARNING, logger="oi_perps.integration.config"):
        load_market_registry(_write(tmp_path, _registry(params)))
    assert any("capLeverage" in r.getMessage() for r in caplog.records)
