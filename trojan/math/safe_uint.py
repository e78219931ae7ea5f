# -*- coding: utf-8 -*-
"""
trojan.math.safe_uint
=====================

Checked unsigned-integer helpers used by every component that touches shares,
balances or collateral.

Goals
-----
- Provide **U256**-oriented arithmetic that never uses Python floats.
- **Checked** semantics only: raise on overflow/underflow/div-by-zero. There is
  no saturating or wrapping variant on purpose; every failure aborts the
  enclosing operation and the journal rolls it back.

Conventions
-----------
- `u256_add` fails when the sum leaves the U256 range.
- `u256_sub` fails when the subtrahend exceeds the minuend.
- `u256_mul` short-circuits to 0 when either operand is 0; otherwise it fails
  when the product, divided back by one operand, does not recover the other
  (i.e. when it leaves the U256 range).
- `u256_div` / `u256_mod` fail with `DivideByZero` on a zero divisor.
- `u256_mul_div_down` keeps the full-precision product and only fails when the
  quotient leaves U256.
- All operations are **integer-only** and validate argument domains.
"""

from __future__ import annotations

from . import U256_MAX, iroot, isqrt, require_divisor, require_u256
from ..errors import Overflow, Underflow


# ---------------------------------------------------------------------------
# Checked (fail-fast on errors)
# ---------------------------------------------------------------------------

def u256_add(x: int, y: int) -> int:
    """Checked add: raise Overflow when the sum exceeds U256_MAX."""
    require_u256(x, y)
    s = x + y
    if s > U256_MAX:
        raise Overflow("addition overflow", details={"x": x, "y": y})
    return s


def u256_sub(x: int, y: int) -> int:
    """Checked sub: raise Underflow when y > x."""
    require_u256(x, y)
    if y > x:
        raise Underflow("subtraction underflow", details={"x": x, "y": y})
    return x - y


def u256_mul(x: int, y: int) -> int:
    """Checked multiply: 0 short-circuit, raise Overflow outside U256."""
    require_u256(x, y)
    if x == 0 or y == 0:
        return 0
    p = x * y
    if p > U256_MAX or p // x != y:
        raise Overflow("multiplication overflow", details={"x": x, "y": y})
    return p


def u256_div(x: int, y: int) -> int:
    """Checked floor divide: raise DivideByZero when y == 0."""
    require_u256(x, y)
    require_divisor(y)
    return x // y


def u256_mod(x: int, y: int) -> int:
    """Checked modulo: raise DivideByZero when y == 0."""
    require_u256(x, y)
    require_divisor(y)
    return x % y


def u256_mul_div_down(x: int, y: int, d: int) -> int:
    """
    Checked floor((x*y)/d). The product is taken at full precision; only the
    operands and the quotient are range-checked.
    """
    require_u256(x, y)
    require_divisor(d)
    q = (x * y) // d
    if q > U256_MAX:
        raise Overflow("mul_div result overflow", details={"x": x, "y": y, "d": d})
    return q


def u256_isqrt(x: int) -> int:
    """Floor square root of a U256 value."""
    require_u256(x)
    return isqrt(x)


def u256_root(x: int, k: int) -> int:
    """Floor k-th root of a U256 value."""
    require_u256(x)
    return iroot(x, k)


# ---------------------------------------------------------------------------
# Public exports
# ---------------------------------------------------------------------------

__all__ = [
    "u256_add", "u256_sub", "u256_mul", "u256_div", "u256_mod",
    "u256_mul_div_down", "u256_isqrt", "u256_root",
]
