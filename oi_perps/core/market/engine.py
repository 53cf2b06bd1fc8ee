"""Market controller: the only code that changes a market's state.

Every entry point follows the same shape:

1. advance funding to the feed timestamp (``_advance``),
2. run guards and compute the post-state from immutable values,
3. check invariants on the post-state,
4. settle tokens, then commit state, positions and the effect record.

Any exception before step 4 leaves the market exactly as it was. A per-market
``threading.RLock`` serializes entry points and multi-field views.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import replace
from typing import Sequence

from . import pricing
from .errors import (
    AccessDeniedError,
    MarketInvariantError,
    NotLiquidatableError,
    PositionNotFoundError,
    SettlementError,
    ValidationError,
)
from .funding import apply_funding, oi_after_funding
from .guards import (
    guard_build_inputs,
    guard_entry_price,
    guard_exit_price,
    guard_open_interest,
    guard_timestamp,
    guard_unwind_fraction,
)
from .invariants import check_all, check_position
from .math import ONE, mul_down, mul_up
from .position import (
    PositionKey,
    PositionLedger,
    cost_basis,
    is_liquidatable,
    liquidation_price,
    notional_current,
    notional_with_pnl,
    position_value,
    shares_to_issue,
)
from .risk import RiskParam, RiskParameters
from .roller import Roller
from .state import initial_state
from .types import Effect, Event, MarketState, OracleData, Position, PriceFeed, SettlementToken

logger = logging.getLogger(__name__)

# Most recent effects kept per market; older records are dropped.
EFFECT_LOG_SIZE = 4096


def _raise_on(reason: str | None, detail: str = "") -> None:
    if reason is not None:
        raise ValidationError(reason, detail)


def _with_side(
    state: MarketState, is_long: bool, oi: int, shares: int, **changes: object
) -> MarketState:
    if is_long:
        return replace(state, oi_long=oi, oi_long_shares=shares, **changes)
    return replace(state, oi_short=oi, oi_short_shares=shares, **changes)


class MarketController:
    """One market: aggregate OI, positions, funding, liquidation and settlement."""

    def __init__(
        self,
        *,
        token: SettlementToken,
        feed: PriceFeed,
        params: RiskParameters,
        fee_recipient: str,
        governor: str,
        address: str = "market",
        effect_log_size: int = EFFECT_LOG_SIZE,
    ) -> None:
        self._token = token
        self._feed = feed
        self._params = params
        self._fee_recipient = fee_recipient
        self._governor = governor
        self._address = address
        self._lock = threading.RLock()
        self._state = initial_state(feed.latest().timestamp)
        self._positions = PositionLedger()
        self._effects: deque[Effect] = deque(maxlen=effect_log_size)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def fee_recipient(self) -> str:
        return self._fee_recipient

    @property
    def params(self) -> RiskParameters:
        return self._params

    @property
    def state(self) -> MarketState:
        return self._state

    @property
    def effects(self) -> tuple[Effect, ...]:
        """Most recent effects, oldest first (at most ``effect_log_size``)."""
        with self._lock:
            return tuple(self._effects)

    def position(self, owner: str, position_id: int) -> Position | None:
        return self._positions.get(owner, position_id)

    def positions(self) -> list[tuple[PositionKey, Position]]:
        with self._lock:
            return list(self._positions.items())

    def bid(self, data: OracleData, volume: int) -> int:
        return pricing.bid(self._params, data, volume)

    def ask(self, data: OracleData, volume: int) -> int:
        return pricing.ask(self._params, data, volume)

    def oi_after_funding(
        self, oi_overweight: int, oi_underweight: int, timestamp_last: int, timestamp_now: int
    ) -> tuple[int, int]:
        return oi_after_funding(self._params.k, oi_overweight, oi_underweight, timestamp_last, timestamp_now)

    def cap_oi_adjusted(self, data: OracleData | None = None) -> int:
        """Per-side OI cap a build would face now."""
        with self._lock:
            fresh, state = self._advance()
            if data is None:
                data = fresh
            return pricing.cap_oi_adjusted(self._params, data, state.minted.value_at(fresh.timestamp))

    def circuit_breaker_level(self) -> int:
        """Fraction of the notional cap the breaker currently allows (``ONE`` = all)."""
        with self._lock:
            data, state = self._advance()
            minted = state.minted.value_at(data.timestamp)
            return pricing.circuit_breaker(self._params, minted, ONE)

    def liquidation_price(self, owner: str, position_id: int) -> int:
        """Liquidation price against funding-updated OI (0 for a closed position)."""
        with self._lock:
            _, state = self._advance()
            pos = self._require_position(owner, position_id, open_only=False)
            side_oi, side_shares = state.side_totals(pos.is_long)
            return liquidation_price(pos, side_oi, side_shares, self._params.maintenance_margin_fraction)

    def is_liquidatable(self, owner: str, position_id: int, price: int | None = None) -> bool:
        """Liquidatability at *price*, or at the zero-volume exit quote when omitted."""
        with self._lock:
            data, state = self._advance()
            pos = self._require_position(owner, position_id, open_only=False)
            side_oi, side_shares = state.side_totals(pos.is_long)
            if price is None:
                _, price = self._exit_quote(data, state, pos.is_long, 0)
            return is_liquidatable(pos, side_oi, side_shares, price, self._params.maintenance_margin_fraction)

    def position_value(self, owner: str, position_id: int, price: int | None = None) -> int:
        with self._lock:
            data, state = self._advance()
            pos = self._require_position(owner, position_id, open_only=False)
            side_oi, side_shares = state.side_totals(pos.is_long)
            if price is None:
                _, price = self._exit_quote(data, state, pos.is_long, 0)
            return position_value(pos, side_oi, side_shares, price, self._params.cap_payoff)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _advance(self) -> tuple[OracleData, MarketState]:
        """Feed snapshot and the funding-updated (uncommitted) state."""
        data = self._feed.latest()
        state = self._state
        last = state.timestamp_update_last
        _raise_on(guard_timestamp(last, data.timestamp), f"feed at {data.timestamp}, market at {last}")
        if data.timestamp == last:
            return data, state
        oi_long, oi_short = apply_funding(self._params.k, state.oi_long, state.oi_short, last, data.timestamp)
        logger.debug(
            "funding %s -> %s: long %s -> %s, short %s -> %s",
            last, data.timestamp, state.oi_long, oi_long, state.oi_short, oi_short,
        )
        return data, replace(state, oi_long=oi_long, oi_short=oi_short, timestamp_update_last=data.timestamp)

    def _require_position(self, owner: str, position_id: int, *, open_only: bool = True) -> Position:
        pos = self._positions.get_open(owner, position_id) if open_only else self._positions.get(owner, position_id)
        if pos is None:
            raise PositionNotFoundError(owner, position_id)
        return pos

    def _entry_quote(self, data: OracleData, state: MarketState, is_long: bool, volume: int) -> tuple[Roller, int]:
        now = data.timestamp
        if is_long:
            roller = state.volume_ask.update(now, data.micro_window, volume)
            return roller, pricing.ask(self._params, data, roller.accumulator)
        roller = state.volume_bid.update(now, data.micro_window, volume)
        return roller, pricing.bid(self._params, data, roller.accumulator)

    def _exit_quote(self, data: OracleData, state: MarketState, is_long: bool, volume: int) -> tuple[Roller, int]:
        return self._entry_quote(data, state, not is_long, volume)

    @staticmethod
    def _exit_roller_field(is_long: bool) -> str:
        return "volume_bid" if is_long else "volume_ask"

    def _check(self, state: MarketState, *positions: Position) -> None:
        violations = check_all(state)
        for pos in positions:
            violations.extend(check_position(pos))
        if violations:
            raise MarketInvariantError(violations)

    def _warn_if_breaker_saturated(self, mint: int, minted: Roller, now: int) -> None:
        if mint <= 0:
            return
        recent = minted.value_at(now)
        target = self._params.circuit_breaker_mint_target
        if recent >= target:
            logger.warning("market %s: net mint %s at or above breaker target %s", self._address, recent, target)

    def _settle(self, mint: int, payouts: Sequence[tuple[str, int]]) -> None:
        if mint > 0:
            self._token.mint(self._address, self._address, mint)
        elif mint < 0:
            self._token.burn(self._address, self._address, -mint)
        for to, amount in payouts:
            self._token.transfer(self._address, to, amount)

    def _emit(self, effect: Effect) -> None:
        self._effects.append(effect)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def update(self) -> OracleData:
        """Settle funding up to the feed timestamp. Idempotent within a timestamp."""
        with self._lock:
            data, state = self._advance()
            self._check(state)
            self._state = state
            self._emit(Effect(Event.UPDATE, timestamp=data.timestamp))
            return data

    def build(
        self,
        *,
        sender: str,
        collateral: int,
        leverage: int,
        is_long: bool,
        price_limit: int | None = None,
    ) -> int:
        """Open a position; returns its id. The sender pays collateral plus the trading fee."""
        with self._lock:
            params = self._params
            _raise_on(guard_build_inputs(params, collateral, leverage))
            data, state = self._advance()
            if not pricing.data_is_valid(params, data):
                raise ValidationError("price_drift_above_limit", f"micro {data.price_micro}, macro {data.price_macro}")
            now = data.timestamp

            notional = mul_up(collateral, leverage)
            debt = notional - collateral
            fee = mul_up(notional, params.trading_fee_rate)

            side_oi, side_shares = state.side_totals(is_long)
            if side_shares == 0:
                side_oi = 0  # OI left behind by funding with no holders
            cap = pricing.cap_oi_adjusted(params, data, state.minted.value_at(now))
            _raise_on(guard_open_interest(side_oi, notional, cap), f"{side_oi} + {notional} > {cap}")

            roller, price = self._entry_quote(data, state, is_long, pricing.volume_fraction(notional, params.cap_notional))
            if price_limit is not None:
                _raise_on(guard_entry_price(is_long, price, price_limit), f"price {price}, limit {price_limit}")
            if price == 0:
                raise ValidationError("price_zero")

            shares = shares_to_issue(notional, side_oi, side_shares)
            if shares == 0:
                raise ValidationError("position_too_small")

            position_id = state.next_position_id
            pos = Position(
                oi_shares=shares,
                debt=debt,
                is_long=is_long,
                liquidated=False,
                entry_price=price,
                notional_initial=notional,
            )
            new_state = _with_side(
                state,
                is_long,
                side_oi + notional,
                side_shares + shares,
                **{"volume_ask" if is_long else "volume_bid": roller, "next_position_id": position_id + 1},
            )
            self._check(new_state, pos)

            try:
                self._token.transfer_from(self._address, sender, self._address, collateral + fee)
            except SettlementError as exc:
                raise ValidationError("insufficient_funds", str(exc)) from exc
            self._token.transfer(self._address, self._fee_recipient, fee)

            self._positions.put(sender, position_id, pos)
            self._state = new_state
            self._emit(Effect(
                Event.BUILD,
                timestamp=now,
                sender=sender,
                owner=sender,
                position_id=position_id,
                price=price,
                oi=notional,
                debt=debt,
                is_long=is_long,
            ))
            logger.info(
                "market %s: build %s/%s %s notional=%s debt=%s price=%s",
                self._address, sender, position_id, "long" if is_long else "short", notional, debt, price,
            )
            return position_id

    def unwind(
        self,
        *,
        sender: str,
        position_id: int,
        fraction: int = ONE,
        price_limit: int | None = None,
    ) -> int:
        """Close *fraction* of a position at the exit quote; returns the net mint."""
        with self._lock:
            params = self._params
            _raise_on(guard_unwind_fraction(fraction), str(fraction))
            data, state = self._advance()
            now = data.timestamp
            pos = self._require_position(sender, position_id)
            side_oi, side_shares = state.side_totals(pos.is_long)

            full = fraction == ONE
            oi_current = notional_current(pos, side_oi, side_shares)
            oi_removed = oi_current if full else mul_down(oi_current, fraction)
            shares_removed = pos.oi_shares if full else mul_down(pos.oi_shares, fraction)
            debt_removed = pos.debt if full else mul_up(pos.debt, fraction)
            notional_removed = pos.notional_initial if full else mul_down(pos.notional_initial, fraction)
            if shares_removed == 0:
                raise ValidationError("position_too_small", "fraction rounds to zero shares")

            roller, price = self._exit_quote(
                data, state, pos.is_long, pricing.volume_fraction(oi_removed, params.cap_notional)
            )
            if price_limit is not None:
                _raise_on(guard_exit_price(pos.is_long, price, price_limit), f"price {price}, limit {price_limit}")

            value = position_value(pos, side_oi, side_shares, price, params.cap_payoff)
            exit_notional = notional_with_pnl(pos, side_oi, side_shares, price, params.cap_payoff)
            if not full:
                value = mul_down(value, fraction)
                exit_notional = mul_down(exit_notional, fraction)
            fee = min(mul_up(exit_notional, params.trading_fee_rate), value)
            mint = value - (notional_removed - debt_removed)
            minted = state.minted.update(now, params.circuit_breaker_window, mint)

            remaining = replace(
                pos,
                oi_shares=pos.oi_shares - shares_removed,
                debt=pos.debt - debt_removed,
                notional_initial=pos.notional_initial - notional_removed,
            )
            new_state = _with_side(
                state,
                pos.is_long,
                max(side_oi - oi_removed, 0),
                side_shares - shares_removed,
                **{self._exit_roller_field(pos.is_long): roller, "minted": minted},
            )
            self._check(new_state, remaining)
            self._warn_if_breaker_saturated(mint, minted, now)

            self._settle(mint, [(sender, value - fee), (self._fee_recipient, fee)])
            self._positions.put(sender, position_id, remaining)
            self._state = new_state
            self._emit(Effect(
                Event.UNWIND,
                timestamp=now,
                sender=sender,
                owner=sender,
                position_id=position_id,
                price=price,
                mint=mint,
                oi=oi_removed,
                is_long=pos.is_long,
                fraction=fraction,
            ))
            logger.info(
                "market %s: unwind %s/%s fraction=%s value=%s fee=%s mint=%s",
                self._address, sender, position_id, fraction, value, fee, mint,
            )
            return mint

    def liquidate(self, *, sender: str, owner: str, position_id: int) -> int:
        """Close an undercollateralized position; returns the net mint (usually negative)."""
        with self._lock:
            params = self._params
            data, state = self._advance()
            now = data.timestamp
            pos = self._require_position(owner, position_id)
            side_oi, side_shares = state.side_totals(pos.is_long)

            roller, price = self._exit_quote(data, state, pos.is_long, 0)
            if not is_liquidatable(pos, side_oi, side_shares, price, params.maintenance_margin_fraction):
                raise NotLiquidatableError(f"position {position_id} of {owner!r} is above maintenance at {price}")

            oi_current = notional_current(pos, side_oi, side_shares)
            value = position_value(pos, side_oi, side_shares, price, params.cap_payoff)
            value -= mul_up(value, params.maintenance_margin_burn_rate)
            fee = mul_up(value, params.liquidation_fee_rate)
            mint = value - cost_basis(pos)
            minted = state.minted.update(now, params.circuit_breaker_window, mint)

            closed = replace(pos, oi_shares=0, debt=0, liquidated=True)
            new_state = _with_side(
                state,
                pos.is_long,
                max(side_oi - oi_current, 0),
                side_shares - pos.oi_shares,
                **{self._exit_roller_field(pos.is_long): roller, "minted": minted},
            )
            self._check(new_state, closed)
            self._warn_if_breaker_saturated(mint, minted, now)

            self._settle(mint, [(sender, value - fee), (self._fee_recipient, fee)])
            self._positions.put(owner, position_id, closed)
            self._state = new_state
            self._emit(Effect(
                Event.LIQUIDATE,
                timestamp=now,
                sender=sender,
                owner=owner,
                position_id=position_id,
                price=price,
                mint=mint,
                is_long=pos.is_long,
            ))
            logger.info(
                "market %s: liquidate %s/%s by %s price=%s value=%s mint=%s",
                self._address, owner, position_id, sender, price, value, mint,
            )
            return mint

    def set_risk_param(self, *, sender: str, param: RiskParam | str, value: int) -> None:
        """Governance: change one risk parameter after settling funding under the old ones."""
        with self._lock:
            if sender != self._governor:
                raise AccessDeniedError(f"{sender!r} is not the governor of market {self._address}")
            try:
                param = RiskParam(param)
            except ValueError:
                raise ValidationError("param_unknown", str(param)) from None
            data, state = self._advance()
            params = self._params.replace_param(param, value)
            self._check(state)
            self._state = state
            self._params = params
            self._emit(Effect(Event.SET_RISK_PARAM, timestamp=data.timestamp, sender=sender, param=param.value, value=value))
            logger.info("market %s: %s set to %s", self._address, param.value, value)
