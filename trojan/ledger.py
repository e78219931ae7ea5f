# -*- coding: utf-8 -*-
"""
trojan.ledger — the fungible-token collaborator and its call guards.

The engine, the bank, the pool and the token all hold balances of some
fungible currency they do not own. This module fixes the interface they rely
on (`Ledger`), ships an in-memory reference implementation
(`InMemoryLedger`), and provides the guards every component uses to move
value (`safe_transfer`, `safe_transfer_from`).

Ledger interface (ERC-20 sketch, explicit caller)
-------------------------------------------------
balance_of(holder) -> int
transfer(caller, to, amount) -> bool
transfer_from(caller, owner, to, amount) -> bool
approve(caller, spender, amount) -> bool

A `False` return or any exception is fatal to the enclosing operation: the
guards raise `ExternalTransferError` and the journal rolls everything back.

`InMemoryLedger` optionally calls a hook after each successful transfer,
standing in for a recipient that executes code when paid. Tests use it to
drive reentrant calls into the component that just sent value.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Protocol, Tuple, runtime_checkable

from .errors import ExternalTransferError
from .events import EV_LEDGER_APPROVAL, EV_LEDGER_TRANSFER, EventLog
from .math import require_u256
from .math.safe_uint import u256_add, u256_sub
from .state.journal import Journal, Journaled, transactional

log = logging.getLogger(__name__)

TransferHook = Callable[[str, str, int], None]


@runtime_checkable
class Ledger(Protocol):
    def balance_of(self, holder: str) -> int: ...

    def transfer(self, caller: str, to: str, amount: int) -> bool: ...

    def transfer_from(self, caller: str, owner: str, to: str, amount: int) -> bool: ...

    def approve(self, caller: str, spender: str, amount: int) -> bool: ...


class InMemoryLedger(Journaled):
    """
    Plain ERC-20-like ledger: no tax, no owner. Insufficient balance or
    allowance returns False (the classic token behaviour) rather than raising.
    """

    _journaled_fields = ("_balances", "_allowances", "_total")

    def __init__(
        self,
        symbol: str = "WETH",
        *,
        address: Optional[str] = None,
        journal: Optional[Journal] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.symbol = symbol
        self.address = address or f"ledger:{symbol}"
        self.journal = journal or Journal()
        self.events = events or EventLog()
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._total = 0
        self._hooks: Dict[str, TransferHook] = {}
        self.journal.register(self, self.events)

    # --- views ---

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def total_supply(self) -> int:
        return self._total

    # --- faucet ---

    @transactional
    def mint(self, to: str, amount: int) -> None:
        """Credit `amount` out of thin air (test/devnet funding)."""
        require_u256(amount)
        self._total = u256_add(self._total, amount)
        self._balances[to] = u256_add(self.balance_of(to), amount)
        self.events.emit(self.address, EV_LEDGER_TRANSFER, {"from": None, "to": to, "value": amount})

    # --- hooks ---

    def on_transfer(self, recipient: str, hook: Optional[TransferHook]) -> None:
        """Register (or clear with None) a callback run after `recipient` is paid."""
        if hook is None:
            self._hooks.pop(recipient, None)
        else:
            self._hooks[recipient] = hook

    # --- mutations ---

    @transactional
    def transfer(self, caller: str, to: str, amount: int) -> bool:
        require_u256(amount)
        if self.balance_of(caller) < amount:
            return False
        self._move(caller, to, amount)
        return True

    @transactional
    def transfer_from(self, caller: str, owner: str, to: str, amount: int) -> bool:
        require_u256(amount)
        allowed = self.allowance(owner, caller)
        if allowed < amount or self.balance_of(owner) < amount:
            return False
        self._allowances[(owner, caller)] = u256_sub(allowed, amount)
        self._move(owner, to, amount)
        return True

    @transactional
    def approve(self, caller: str, spender: str, amount: int) -> bool:
        require_u256(amount)
        self._allowances[(caller, spender)] = amount
        self.events.emit(self.address, EV_LEDGER_APPROVAL, {"owner": caller, "spender": spender, "value": amount})
        return True

    def _move(self, frm: str, to: str, amount: int) -> None:
        self._balances[frm] = u256_sub(self.balance_of(frm), amount)
        self._balances[to] = u256_add(self.balance_of(to), amount)
        self.events.emit(self.address, EV_LEDGER_TRANSFER, {"from": frm, "to": to, "value": amount})
        hook = self._hooks.get(to)
        if hook is not None:
            hook(frm, to, amount)


# ------------------------------------------------------------------------------
# Guards
# ------------------------------------------------------------------------------


def _guard(op: str, amount: int, call: Callable[[], bool]) -> None:
    try:
        ok = call()
    except ExternalTransferError:
        raise
    except Exception as e:
        raise ExternalTransferError(f"{op} raised {type(e).__name__}: {e}", op=op, amount=amount) from e
    if ok is not True:
        log.debug("ledger rejected %s of %d", op, amount)
        raise ExternalTransferError(f"{op} was rejected by the ledger", op=op, amount=amount)


def safe_transfer(ledger: Ledger, caller: str, to: str, amount: int) -> None:
    _guard("transfer", amount, lambda: ledger.transfer(caller, to, amount))


def safe_transfer_from(ledger: Ledger, caller: str, owner: str, to: str, amount: int) -> None:
    _guard("transfer_from", amount, lambda: ledger.transfer_from(caller, owner, to, amount))


__all__ = [
    "Ledger",
    "InMemoryLedger",
    "TransferHook",
    "safe_transfer",
    "safe_transfer_from",
]
