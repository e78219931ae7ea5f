"""
trojan.token — the tax-bearing bonding-curve currency and its curves.
"""

from .curve import BondingCurve, FlatCurve, LinearCurve, PowerCurve, make_curve
from .trojan import FundingPool, TrojanToken

__all__ = [
    "BondingCurve",
    "FlatCurve",
    "LinearCurve",
    "PowerCurve",
    "make_curve",
    "FundingPool",
    "TrojanToken",
]
