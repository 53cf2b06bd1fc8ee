"""Tests for oi_perps/core/market/math.py: fixed-point ops, exp/ln/pow."""

import pytest

from oi_perps.core.market.errors import ArithmeticOverflowError, DivisionDegenerateError
from oi_perps.core.market.math import (
    INT256_MAX,
    ONE,
    UINT256_MAX,
    check_int256,
    check_uint256,
    div_down,
    div_up,
    exp,
    ln,
    mul_down,
    mul_up,
    pow,
    pow_int,
    trunc_div,
)


class TestMulDiv:
    def test_mul_exact(self):
        assert mul_down(2 * ONE, 3 * ONE) == 6 * ONE
        assert mul_up(2 * ONE, 3 * ONE) == 6 * ONE

    def test_mul_rounding(self):
        assert mul_down(1, 1) == 0
        assert mul_up(1, 1) == 1

    def test_div_rounding(self):
        assert div_down(ONE, 3 * ONE) == 333333333333333333
        assert div_up(ONE, 3 * ONE) == 333333333333333334

    def test_div_by_zero(self):
        with pytest.raises(DivisionDegenerateError):
            div_down(ONE, 0)
        with pytest.raises(ZeroDivisionError):
            div_up(ONE, 0)

    def test_overflow(self):
        with pytest.raises(ArithmeticOverflowError):
            mul_down(UINT256_MAX, 2 * ONE)
        with pytest.raises(ArithmeticError):
            div_down(UINT256_MAX, 1)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            mul_down(-1, ONE)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            mul_down(True, ONE)


class TestTruncDiv:
    def test_signs(self):
        assert trunc_div(7, 2) == 3
        assert trunc_div(-7, 2) == -3
        assert trunc_div(7, -2) == -3
        assert trunc_div(-7, -2) == 3

    def test_zero_divisor(self):
        with pytest.raises(DivisionDegenerateError):
            trunc_div(1, 0)


class TestRangeChecks:
    def test_uint(self):
        assert check_uint256(UINT256_MAX) == UINT256_MAX
        with pytest.raises(ArithmeticOverflowError):
            check_uint256(-1)

    def test_int(self):
        assert check_int256(-INT256_MAX) == -INT256_MAX
        with pytest.raises(ArithmeticOverflowError):
            check_int256(INT256_MAX + 1)


class TestExpLn:
    def test_exp_zero(self):
        assert exp(0) == ONE

    def test_exp_one(self):
        assert abs(exp(ONE) - 2718281828459045235) <= 1

    def test_exp_minus_one(self):
        assert abs(exp(-ONE) - 367879441171442321) <= 1

    def test_exp_underflow_is_zero(self):
        assert exp(-42 * ONE) == 0

    def test_exp_overflow(self):
        with pytest.raises(ArithmeticOverflowError):
            exp(131 * ONE)

    def test_ln_one(self):
        assert ln(ONE) == 0

    def test_ln_two(self):
        assert ln(2 * ONE) == 693147180559945309

    def test_ln_below_one_is_negative(self):
        assert abs(ln(ONE // 2) + 693147180559945309) <= 1

    def test_ln_non_positive(self):
        with pytest.raises(ValueError):
            ln(0)

    def test_ln_exp_inverse(self):
        for x in (-5 * ONE, -ONE // 3, 0, ONE // 7, 3 * ONE, 5 * ONE):
            assert abs(ln(exp(x)) - x) <= 1_000


class TestPow:
    def test_square_root(self):
        assert pow(4 * ONE, ONE // 2) == 2 * ONE

    def test_zero_exponent(self):
        assert pow(123 * ONE, 0) == ONE
        assert pow_int(123 * ONE, 0) == ONE

    def test_zero_base(self):
        assert pow(0, ONE) == 0
        with pytest.raises(DivisionDegenerateError):
            pow(0, -ONE)

    def test_pow_int_exact(self):
        assert pow_int(ONE // 2, 3) == ONE // 8
        assert pow_int(3 * ONE, 4) == 81 * ONE

    def test_pow_int_matches_pow(self):
        base = ONE - 2 * 1220000000000
        a = pow_int(base, 600)
        b = pow(base, 600 * ONE)
        assert abs(a - b) <= a // 10**12
