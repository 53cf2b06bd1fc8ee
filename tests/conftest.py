"""Shared market fixtures.

Default risk parameters and feed settings follow the reference market:
micro window 600s, macro window 3600s, price 1, reserve 2,000,000.
"""

import pytest

from oi_perps.core.market import ONE, MarketController, RiskParameters
from oi_perps.integration.feeds import ManualClock, MockFeed
from oi_perps.integration.token import BURNER_ROLE, MINTER_ROLE, OvlToken

from tests.market_domain import DEFAULT_RISK_PARAMS, INITIAL_BALANCE, MAX_ALLOWANCE, START


@pytest.fixture
def risk_params() -> RiskParameters:
    return RiskParameters.from_sequence(DEFAULT_RISK_PARAMS)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture
def feed(clock) -> MockFeed:
    return MockFeed(600, 3600, ONE, 2_000_000 * ONE, clock=clock)


@pytest.fixture
def token() -> OvlToken:
    t = OvlToken(admin="gov")
    t.grant_role("gov", MINTER_ROLE, "gov")
    for account in ("alice", "bob"):
        t.mint("gov", account, INITIAL_BALANCE)
    return t


@pytest.fixture
def market(token, feed, risk_params) -> MarketController:
    m = MarketController(
        token=token,
        feed=feed,
        params=risk_params,
        fee_recipient="fee_recipient",
        governor="gov",
        address="market",
    )
    token.grant_role("gov", MINTER_ROLE, m.address)
    token.grant_role("gov", BURNER_ROLE, m.address)
    for account in ("alice", "bob"):
        token.approve(account, m.address, MAX_ALLOWANCE)
    return m
