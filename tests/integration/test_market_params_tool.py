"""Tests for tools/market_params.py."""

import importlib.util
import json
import sys
from pathlib import Path

import pytest

from oi_perps.core.market import RISK_PARAM_ORDER

from tests.market_domain import DEFAULT_RISK_PARAMS

ROOT = Path(__file__).resolve().parents[2]


def _load_tool():
    path = ROOT / "tools" / "market_params.py"
    spec = importlib.util.spec_from_file_location("market_params_tool", path)
    assert spec and spec.loader
    module = importlib.util.module_from_spec(spec)
    sys.modules["market_params_tool"] = module
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="module")
def tool():
    return _load_tool()


def test_prints_ordered_params(tool, capsys):
    assert tool.main(["--market", "ETH-DAI"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["market"] == "ETH-DAI"
    assert out["order"] == list(RISK_PARAM_ORDER)
    assert out["risk_params"] == list(DEFAULT_RISK_PARAMS)


def test_network_filter(tool, capsys):
    assert tool.main(["--market", "WBTC-ETH", "--network", "arbitrum-mainnet"]) == 1
    assert "unknown market" in capsys.readouterr().err


def test_missing_config(tool, tmp_path, capsys):
    assert tool.main(["--config", str(tmp_path / "nope.yaml"), "--market", "ETH-DAI"]) == 2


def test_invalid_config(tool, tmp_path, capsys):
    bad = tmp_path / "markets.yaml"
    bad.write_text("schema: nope\nmarkets: {}\n", encoding="utf-8")
    assert tool.main(["--config", str(bad), "--market", "ETH-DAI"]) == 1
    assert "invalid" in capsys.readouterr().err
