# -*- coding: utf-8 -*-
"""
trojan.token.curve
==================

Bonding curves for the Trojan token. A curve maps cumulative token supply to
the cumulative collateral required to have minted it (`curve_integral`) and
back (`inverse_curve_integral`).

All curves here share one shape: the marginal price at supply ``s`` is
``numerator * s**k / denominator`` for a fixed exponent ``k``, so

    curve_integral(s) = floor(numerator * s**(k+1) / ((k+1) * denominator))

and the inverse is the *largest* supply whose integral does not exceed the
given collateral::

    inverse_curve_integral(c) = floor_root((D * (c + 1) - 1) // numerator, k + 1)
    where D = (k + 1) * denominator

Rounding
--------
- `curve_integral` floors, so the reserve never over-states what was paid.
- `inverse_curve_integral` is the exact floor inverse: for every x where the
  integral is strictly increasing at integer resolution
  (``curve_integral(x + 1) > curve_integral(x)``),
  ``inverse_curve_integral(curve_integral(x)) == x``. On flat stretches it
  returns the right end of the stretch, i.e. it is off by less than the width
  of the stretch and never below x.
- Both functions are monotonically non-decreasing.

Curves are immutable value objects; the token holds exactly one.
"""

from __future__ import annotations

import abc
from typing import Any, Dict

from ..config import CurveParams
from ..errors import Overflow, ValidationError
from ..math import U256_MAX, iroot, require_u256
from ..math.safe_uint import u256_add, u256_mul


class BondingCurve(abc.ABC):
    """Strictly increasing supply -> collateral map and its floor inverse."""

    kind: str = "abstract"

    @abc.abstractmethod
    def curve_integral(self, supply: int) -> int:
        """Collateral required to mint `supply` units from zero."""

    @abc.abstractmethod
    def inverse_curve_integral(self, collateral: int) -> int:
        """Largest supply whose integral is <= `collateral`."""

    def spot_price(self, supply: int) -> int:
        """Collateral charged for the next unit at `supply`."""
        return self.curve_integral(u256_add(supply, 1)) - self.curve_integral(supply)

    def describe(self) -> Dict[str, Any]:
        return {"kind": self.kind}


class PowerCurve(BondingCurve):
    """Marginal price ``numerator * s**exponent / denominator``."""

    kind = "power"

    def __init__(self, numerator: int = 1, denominator: int = 1, exponent: int = 2) -> None:
        if not isinstance(numerator, int) or numerator <= 0:
            raise ValidationError("curve numerator must be a positive int", details={"numerator": numerator})
        if not isinstance(denominator, int) or denominator <= 0:
            raise ValidationError("curve denominator must be a positive int", details={"denominator": denominator})
        if not isinstance(exponent, int) or exponent < 0:
            raise ValidationError("curve exponent must be a non-negative int", details={"exponent": exponent})
        self.numerator = numerator
        self.denominator = denominator
        self.exponent = exponent
        self._degree = exponent + 1
        self._scale = u256_mul(self._degree, denominator)

    def curve_integral(self, supply: int) -> int:
        require_u256(supply)
        # Only the result has to fit in U256, not numerator * supply**(k+1).
        q = self.numerator * supply ** self._degree // self._scale
        if q > U256_MAX:
            raise Overflow("curve integral overflow", details={"supply": supply, "exponent": self.exponent})
        return q

    def inverse_curve_integral(self, collateral: int) -> int:
        require_u256(collateral)
        bound = (self._scale * (collateral + 1) - 1) // self.numerator
        return iroot(bound, self._degree)

    def describe(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "numerator": self.numerator,
            "denominator": self.denominator,
            "exponent": self.exponent,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.numerator}/{self.denominator}, exponent={self.exponent})"


class LinearCurve(PowerCurve):
    """Price grows linearly with supply: integral = numerator * s**2 / (2 * denominator)."""

    kind = "linear"

    def __init__(self, numerator: int = 1, denominator: int = 1) -> None:
        super().__init__(numerator, denominator, exponent=1)


class FlatCurve(PowerCurve):
    """Constant price of numerator / denominator collateral per unit."""

    kind = "flat"

    def __init__(self, numerator: int = 1, denominator: int = 1) -> None:
        super().__init__(numerator, denominator, exponent=0)


def make_curve(params: CurveParams) -> BondingCurve:
    params.validate()
    if params.kind == "linear":
        return LinearCurve(params.numerator, params.denominator)
    if params.kind == "flat":
        return FlatCurve(params.numerator, params.denominator)
    return PowerCurve(params.numerator, params.denominator, params.exponent)


__all__ = ["BondingCurve", "PowerCurve", "LinearCurve", "FlatCurve", "make_curve"]
