"""
trojan.address — principal identities.

Principals are opaque strings delivered by the host (the authenticated caller).
Component addresses are derived deterministically from a tag so a wired system
is reproducible across runs: `address_for("trojan.dao")` always yields the same
20-byte hex address.
"""

from __future__ import annotations

import hashlib
from typing import Final

from .errors import ValidationError

ZERO_ADDRESS: Final[str] = "0x" + "00" * 20


def address_for(tag: str) -> str:
    """Stable 20-byte hex address (0x...) derived from `tag`."""
    h = hashlib.sha3_256(tag.encode("utf-8")).hexdigest()[:40]
    return "0x" + h


def require_address(addr: str, what: str = "address") -> str:
    """
    Ensure `addr` is a non-empty principal and not the zero address.
    Returns the address unchanged for convenient inline use.
    """
    if not isinstance(addr, str) or len(addr) == 0:
        raise ValidationError(f"{what} must be a non-empty string", details={what: repr(addr)})
    if addr == ZERO_ADDRESS:
        raise ValidationError(f"{what} must not be the zero address")
    return addr


__all__ = ["ZERO_ADDRESS", "address_for", "require_address"]
