#!/usr/bin/env python3
"""
Print the ordered risk-parameter tuple for one market of the registry.

Output is JSON, in the index order governance uses:
  {"market": ..., "order": [...], "risk_params": [...]}
Cross-parameter consistency warnings go to stderr through logging.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from oi_perps.core.market.risk import RISK_PARAM_ORDER  # noqa: E402
from oi_perps.integration.config import ConfigError, filter_by_network, load_market_registry  # noqa: E402

DEFAULT_CONFIG = REPO_ROOT / "config" / "markets.yaml"


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    ap.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="market registry YAML")
    ap.add_argument("--market", required=True, help="market name, e.g. ETH-DAI")
    ap.add_argument("--network", action="append", default=[], help="restrict to markets on this network")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    if not args.config.exists():
        print(f"missing registry file: {args.config}", file=sys.stderr)
        return 2
    try:
        registry = load_market_registry(args.config)
    except ConfigError as exc:
        print(f"market registry invalid: {exc}", file=sys.stderr)
        return 1
    if args.network:
        registry = filter_by_network(registry, args.network)
    cfg = registry.get(args.market)
    if cfg is None:
        print(f"unknown market: {args.market}", file=sys.stderr)
        return 1

    print(json.dumps({"market": cfg.name, "order": list(RISK_PARAM_ORDER), "risk_params": list(cfg.risk_params)}))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
