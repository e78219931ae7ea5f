# -*- coding: utf-8 -*-
"""
trojan.math
===========

Deterministic, integer-only math primitives shared by the governance engine,
the funding pool and the token.

Conventions
-----------
- All functions are **pure** and deterministic; failures raise subclasses of
  `trojan.errors.MathError` (which is also a built-in `ArithmeticError`).
- Rounding is explicit: every proportional computation floors, so rounding
  loss accrues to the pool being redeemed against and never creates value.
- U256 envelopes mimic the on-chain numeric range the system was sized for.
- BPS (basis points, 1e4) express taxes; WAD (1e18) is one whole token at the
  default 18 decimals.

**Never** import the Python `math` module except for `isqrt` (which is exact for
integers). No floats are used anywhere.

Examples
--------
    from trojan.math import apply_bps
    from trojan.math.safe_uint import u256_mul_div_down

    tax = apply_bps(1000, 100)  # 10 (floor)
    payout = u256_mul_div_down(balance, shares, total_shares)
"""

from __future__ import annotations

from typing import Final, Tuple

from ..errors import DivideByZero, Overflow, ValidationError

# ---------------------------------------------------------------------------
# Numeric envelopes & constants
# ---------------------------------------------------------------------------

U256_MAX: Final[int] = (1 << 256) - 1

BPS_DEN: Final[int] = 10_000  # basis points denominator
WAD: Final[int] = 10**18  # 1e18 fixed-point


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def require_u256(*xs: int) -> None:
    """Raise unless every value is an int in [0, U256_MAX]."""
    for n in xs:
        if not isinstance(n, int) or isinstance(n, bool):
            raise ValidationError("expected an unsigned integer", details={"value": repr(n)})
        if n < 0:
            raise ValidationError("negative value for unsigned integer", details={"value": n})
        if n > U256_MAX:
            raise Overflow("value exceeds U256 range")


def require_divisor(d: int) -> None:
    if d == 0:
        raise DivideByZero("division by zero")


# ---------------------------------------------------------------------------
# Basis points
# ---------------------------------------------------------------------------


def check_bps(bps: int) -> None:
    if not isinstance(bps, int) or bps < 0 or bps > BPS_DEN:
        raise ValidationError("basis points must be within [0, 10000]", details={"bps": bps})


def apply_bps(amount: int, bps: int) -> int:
    """floor(amount * bps / 10_000)."""
    require_u256(amount)
    check_bps(bps)
    return (amount * bps) // BPS_DEN


def fee_split(amount: int, bps_fee: int) -> Tuple[int, int]:
    """
    Split `amount` into (net, fee) where fee = floor(amount * bps / 10_000).
    net + fee == amount always.
    """
    fee = apply_bps(amount, bps_fee)
    return amount - fee, fee


# ---------------------------------------------------------------------------
# Roots
# ---------------------------------------------------------------------------


def isqrt(n: int) -> int:
    """Floor integer square root of any non-negative int."""
    if n < 0:
        raise ValidationError("isqrt of negative value")
    import math  # local import; we only use isqrt

    return math.isqrt(n)


def iroot(n: int, k: int) -> int:
    """
    Floor k-th root of a non-negative integer by bisection: the largest r with
    r**k <= n. Exact for arbitrarily large ints.
    """
    if n < 0:
        raise ValidationError("iroot of negative value")
    if k < 1:
        raise ValidationError("root degree must be >= 1", details={"k": k})
    if k == 1 or n < 2:
        return n
    if k == 2:
        return isqrt(n)
    lo, hi = 0, 1 << ((n.bit_length() + k - 1) // k)
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if mid**k <= n:
            lo = mid
        else:
            hi = mid - 1
    return lo


__all__ = [
    "U256_MAX",
    "BPS_DEN",
    "WAD",
    "require_u256",
    "require_divisor",
    "check_bps",
    "apply_bps",
    "fee_split",
    "isqrt",
    "iroot",
]
