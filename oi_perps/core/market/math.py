"""Fixed-point arithmetic for the market core.

Every function is stateless and operates on plain Python ints scaled by
``ONE = 10**18``. Rounding direction is always explicit (``*_down`` /
``*_up``); signed division truncates toward zero.

Results are checked against the 256-bit ranges used by the on-chain
accounting this engine mirrors, so an unbounded Python int never leaks into
state. ``exp`` and ``ln`` are deterministic integer series evaluated at
36-decimal internal precision.
"""

from __future__ import annotations

from .errors import ArithmeticOverflowError, DivisionDegenerateError

ONE: int = 10**18

UINT256_MAX: int = 2**256 - 1
INT256_MAX: int = 2**255 - 1
INT256_MIN: int = -(2**255)

# exp() domain, in ONE units
MAX_NATURAL_EXPONENT: int = 130 * ONE
MIN_NATURAL_EXPONENT: int = -41 * ONE

_E18: int = 10**18
_S: int = 10**36  # internal series scale
LN2_36: int = 693147180559945309417232121458176568


# -- Range checks ------------------------------------------------------------

def _require_int(name: str, x: int) -> None:
    if not isinstance(x, int) or isinstance(x, bool):
        raise TypeError(f"{name} must be int, got {type(x).__name__}")


def _require_uint(name: str, x: int) -> None:
    _require_int(name, x)
    if x < 0:
        raise ValueError(f"{name} must be >= 0, got {x}")


def check_uint256(x: int) -> int:
    """Return *x* unchanged, or raise if it does not fit in uint256."""
    if x < 0 or x > UINT256_MAX:
        raise ArithmeticOverflowError(f"uint256 out of range: {x}")
    return x


def check_int256(x: int) -> int:
    """Return *x* unchanged, or raise if it does not fit in int256."""
    if x < INT256_MIN or x > INT256_MAX:
        raise ArithmeticOverflowError(f"int256 out of range: {x}")
    return x


# -- Basic fixed-point ops ---------------------------------------------------

def mul_down(a: int, b: int) -> int:
    """``a * b / ONE`` rounded down."""
    _require_uint("a", a)
    _require_uint("b", b)
    return check_uint256((a * b) // ONE)


def mul_up(a: int, b: int) -> int:
    """``a * b / ONE`` rounded up."""
    _require_uint("a", a)
    _require_uint("b", b)
    return check_uint256((a * b + ONE - 1) // ONE)


def div_down(a: int, b: int) -> int:
    """``a * ONE / b`` rounded down."""
    _require_uint("a", a)
    _require_uint("b", b)
    if b == 0:
        raise DivisionDegenerateError("div_down by zero")
    return check_uint256((a * ONE) // b)


def div_up(a: int, b: int) -> int:
    """``a * ONE / b`` rounded up."""
    _require_uint("a", a)
    _require_uint("b", b)
    if b == 0:
        raise DivisionDegenerateError("div_up by zero")
    return check_uint256((a * ONE + b - 1) // b)


def trunc_div(a: int, b: int) -> int:
    """Signed integer division truncating toward zero (``//`` floors)."""
    _require_int("a", a)
    _require_int("b", b)
    if b == 0:
        raise DivisionDegenerateError("trunc_div by zero")
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


# -- Transcendentals ---------------------------------------------------------

def _exp_36(x: int) -> int:
    """e**x for a 36-decimal signed *x*, at 36-decimal precision."""
    n = x // LN2_36  # floor, may be negative
    r = x - n * LN2_36  # 0 <= r < ln 2
    term = _S
    total = _S
    i = 1
    while term:
        term = (term * r) // (_S * i)
        total += term
        i += 1
    if n >= 0:
        return total << n
    return total >> (-n)


def _ln_36(x: int) -> int:
    """ln(x) for a positive 18-decimal *x*, at 36-decimal precision."""
    y = x * _E18
    n = 0
    if y >= 2 * _S:
        n = (y // _S).bit_length() - 1
        y >>= n
    while y < _S:
        y <<= 1
        n -= 1
    # ln(y) = 2 * atanh((y - 1) / (y + 1)), with y in [1, 2)
    z = ((y - _S) * _S) // (y + _S)
    z2 = (z * z) // _S
    term = z
    total = 0
    k = 1
    while term:
        total += term // k
        term = (term * z2) // _S
        k += 2
    return n * LN2_36 + 2 * total


def _exp_checked_36(x36: int) -> int:
    if x36 > MAX_NATURAL_EXPONENT * _E18:
        raise ArithmeticOverflowError(f"exp argument too large: {x36 // _E18}")
    if x36 < MIN_NATURAL_EXPONENT * _E18:
        return 0
    return _exp_36(x36) // _E18


def exp(x: int) -> int:
    """Natural exponential of a signed fixed-point *x*.

    Arguments below ``MIN_NATURAL_EXPONENT`` underflow to 0; arguments above
    ``MAX_NATURAL_EXPONENT`` raise ``ArithmeticOverflowError``.
    """
    _require_int("x", x)
    return _exp_checked_36(x * _E18)


def ln(x: int) -> int:
    """Natural logarithm of a positive fixed-point *x* (truncated toward zero)."""
    _require_int("x", x)
    if x <= 0:
        raise ValueError(f"ln undefined for {x}")
    return trunc_div(_ln_36(x), _E18)


def pow(base: int, exponent: int) -> int:  # noqa: A001
    """``base ** exponent`` for fixed-point *base* >= 0 and signed *exponent*."""
    _require_uint("base", base)
    _require_int("exponent", exponent)
    if exponent == 0:
        return ONE
    if base == 0:
        if exponent < 0:
            raise DivisionDegenerateError("zero base with negative exponent")
        return 0
    return _exp_checked_36(trunc_div(_ln_36(base) * exponent, ONE))


def pow_int(base: int, n: int) -> int:
    """``base ** n`` for an integer exponent, by squaring (each step rounded down)."""
    _require_uint("base", base)
    _require_uint("n", n)
    result = ONE
    b = base
    while n:
        if n & 1:
            result = mul_down(result, b)
        n >>= 1
        if n:
            b = mul_down(b, b)
    return result
