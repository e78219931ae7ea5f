from __future__ import annotations
# trojan/errors.py
"""
Error types for the Trojan governance engine, funding pool and token.

Every failure aborts the whole operation: the journal (trojan.state.journal)
rolls back all registered components when one of these escapes an entry point.
The classes are lightweight and serializable so they can be surfaced over
logs or any transport a host chooses.

Hierarchy
---------
TrojanError (base)
 ├─ ValidationError        : bad/zero address, out-of-range vote, over-asking
 ├─ MathError              : checked-arithmetic failure (also ArithmeticError)
 │   ├─ Overflow
 │   ├─ Underflow
 │   └─ DivideByZero       : (also ZeroDivisionError)
 ├─ AuthorizationError     : non-member, non-delegate, non-owner, non-keeper
 ├─ SequencingError        : out-of-order processing, voting outside window
 │   └─ ReentrancyError    : call made while another is in flight
 └─ ExternalTransferError  : collaborator ledger rejected a transfer
"""


from typing import Any, Dict, Mapping, Optional
import json


class TrojanError(Exception):
    """Base class for Trojan domain errors."""

    code: str = "TROJAN_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            # Keep this compact and stable for logs
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"), default=str)
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class ValidationError(TrojanError, ValueError):
    """Malformed input: zero address, vote code out of range, amount above what is held."""
    code = "TROJAN_VALIDATION"


class MathError(TrojanError, ArithmeticError):
    """Checked unsigned arithmetic failed."""
    code = "TROJAN_MATH"


class Overflow(MathError):
    code = "TROJAN_MATH_OVERFLOW"


class Underflow(MathError):
    code = "TROJAN_MATH_UNDERFLOW"


class DivideByZero(MathError, ZeroDivisionError):
    code = "TROJAN_MATH_DIV0"


class AuthorizationError(TrojanError):
    """
    Caller lacks the role an operation requires: member, delegate, owner,
    keeper, or the applicant of a proposal.
    """
    code = "TROJAN_UNAUTHORIZED"

    def __init__(
        self,
        message: str = "caller is not authorized",
        *,
        caller: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if caller is not None:
            d.setdefault("caller", caller)
        super().__init__(message, details=d)


class SequencingError(TrojanError):
    """An operation was attempted at the wrong point of a lifecycle."""
    code = "TROJAN_SEQUENCING"


class ReentrancyError(SequencingError):
    """A guarded entry point was re-entered while a call was in flight."""
    code = "TROJAN_REENTRANCY"


class ExternalTransferError(TrojanError):
    """The collaborator ledger returned False or raised while moving value."""
    code = "TROJAN_TRANSFER_FAILED"

    def __init__(
        self,
        message: str = "external transfer failed",
        *,
        op: Optional[str] = None,
        amount: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if op is not None:
            d["op"] = op
        if amount is not None:
            d["amount"] = int(amount)
        super().__init__(message, details=d)


__all__ = [
    "TrojanError",
    "ValidationError",
    "MathError",
    "Overflow",
    "Underflow",
    "DivideByZero",
    "AuthorizationError",
    "SequencingError",
    "ReentrancyError",
    "ExternalTransferError",
]
