"""
trojan.events — observable events for audit and indexing collaborators.

Components emit events into a shared `EventLog`. The log is itself journaled:
events emitted by an operation that later fails are rolled back together with
the state they described, so the log only ever holds committed history.

Event **names** are namespaced as ``"trojan.<domain>.<Event>"``. This module
exports:
  1) `EV_*` constants for the canonical names
  2) `Event`, an immutable record with a monotonically increasing sequence
  3) `EventLog` with `emit`, `filter` and `names` helpers
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .state.journal import Journaled

log = logging.getLogger(__name__)

# ------------------------------------------------------------------------------
# Canonical event name constants
# ------------------------------------------------------------------------------

# Governance engine
EV_SUMMON_COMPLETE       = "trojan.dao.SummonComplete"
EV_SUBMIT_PROPOSAL       = "trojan.dao.SubmitProposal"
EV_SUBMIT_VOTE           = "trojan.dao.SubmitVote"
EV_PROCESS_PROPOSAL      = "trojan.dao.ProcessProposal"
EV_RAGEQUIT              = "trojan.dao.Ragequit"
EV_ABORT                 = "trojan.dao.Abort"
EV_UPDATE_DELEGATE_KEY   = "trojan.dao.UpdateDelegateKey"

# Treasury
EV_WITHDRAWAL            = "trojan.bank.Withdrawal"
EV_OWNERSHIP_TRANSFERRED = "trojan.access.OwnershipTransferred"

# Funding pool
EV_POOL_SYNC             = "trojan.pool.Sync"
EV_POOL_DEPOSIT          = "trojan.pool.Deposit"
EV_POOL_WITHDRAW         = "trojan.pool.Withdraw"
EV_POOL_KEEPER_WITHDRAW  = "trojan.pool.KeeperWithdraw"
EV_POOL_ADD_KEEPERS      = "trojan.pool.AddKeepers"
EV_POOL_REMOVE_KEEPERS   = "trojan.pool.RemoveKeepers"
EV_POOL_SHARES_MINTED    = "trojan.pool.SharesMinted"
EV_POOL_SHARES_BURNED    = "trojan.pool.SharesBurned"

# Token
EV_TRANSFER              = "trojan.token.Transfer"
EV_APPROVAL              = "trojan.token.Approval"
EV_MINT                  = "trojan.token.Mint"
EV_SELL                  = "trojan.token.Sell"
EV_REDISTRIBUTION        = "trojan.token.Redistribution"
EV_DAO_TAX               = "trojan.token.DaoTax"
EV_TAX_EXEMPTION         = "trojan.token.TaxExemption"
EV_POOL_BOUND            = "trojan.token.PoolBound"

# Collaborator ledger
EV_LEDGER_TRANSFER       = "trojan.ledger.Transfer"
EV_LEDGER_APPROVAL       = "trojan.ledger.Approval"


def short_name(name: str) -> str:
    """`"trojan.dao.Ragequit"` -> `"Ragequit"`."""
    return name.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class Event:
    """
    One emitted event.

    Fields:
      - seq: position in the log (0-based, strictly increasing)
      - source: address of the emitting component
      - name: canonical event name (see EV_*)
      - args: JSON-friendly payload
    """
    seq: int
    source: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    @property
    def short(self) -> str:
        return short_name(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {"seq": self.seq, "source": self.source, "name": self.name, "args": dict(self.args)}


class EventLog(Journaled):
    """Append-only, journaled, in-memory event sink."""

    _journaled_fields = ("_events",)

    def __init__(self) -> None:
        self._events: List[Event] = []

    def emit(self, source: str, name: str, args: Optional[Mapping[str, Any]] = None) -> Event:
        ev = Event(seq=len(self._events), source=source, name=name, args=dict(args or {}))
        self._events.append(ev)
        log.debug("event %s from %s: %s", short_name(name), source, ev.args)
        return ev

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(list(self._events))

    @property
    def events(self) -> List[Event]:
        return list(self._events)

    def filter(self, name: Optional[str] = None, source: Optional[str] = None) -> List[Event]:
        """Events matching a canonical or short name and/or a source address."""
        out: List[Event] = []
        for ev in self._events:
            if name is not None and name not in (ev.name, ev.short):
                continue
            if source is not None and ev.source != source:
                continue
            out.append(ev)
        return out

    def names(self, source: Optional[str] = None) -> List[str]:
        """Short names in emission order, optionally for one source."""
        return [ev.short for ev in self._events if source is None or ev.source == source]

    def last(self, name: Optional[str] = None) -> Optional[Event]:
        matches = self.filter(name) if name is not None else self._events
        return matches[-1] if matches else None


__all__ = [
    "EV_SUMMON_COMPLETE", "EV_SUBMIT_PROPOSAL", "EV_SUBMIT_VOTE", "EV_PROCESS_PROPOSAL",
    "EV_RAGEQUIT", "EV_ABORT", "EV_UPDATE_DELEGATE_KEY",
    "EV_WITHDRAWAL", "EV_OWNERSHIP_TRANSFERRED",
    "EV_POOL_SYNC", "EV_POOL_DEPOSIT", "EV_POOL_WITHDRAW", "EV_POOL_KEEPER_WITHDRAW",
    "EV_POOL_ADD_KEEPERS", "EV_POOL_REMOVE_KEEPERS", "EV_POOL_SHARES_MINTED", "EV_POOL_SHARES_BURNED",
    "EV_TRANSFER", "EV_APPROVAL", "EV_MINT", "EV_SELL", "EV_REDISTRIBUTION", "EV_DAO_TAX",
    "EV_TAX_EXEMPTION", "EV_POOL_BOUND",
    "EV_LEDGER_TRANSFER", "EV_LEDGER_APPROVAL",
    "Event",
    "EventLog",
    "short_name",
]
