from __future__ import annotations

"""
Trojan follow-on funding pool
-----------------------------

An independent share ledger over a balance of the engine's approved token.
Donors buy in with `deposit` and leave with `withdraw`; grant recipients of the
governance engine are minted pool shares when the pool `sync`s over processed
proposals.

Share math (all floors, all checked):
  • deposit:   shares = total_pool_shares * amount / pool_balance
  • withdraw:  amount = pool_balance * shares / total_pool_shares
  • sync:      shares = total_pool_shares * shares_requested / max_total_shares_at_yes_vote

A grant is a passed, non-aborted proposal with zero tribute and a positive
share request. Its pool stake is sized against the engine's total shares at
the time of the last Yes vote, which bounds the pool's exposure to ragequits
that happen after the vote.

The pool is *active* once any share exists; `activate` bootstraps it. Every
mutating entry point holds a non-reentrancy lock for the whole call, including
the ledger transfers it makes.
"""

import copy
import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, Optional, Set, TypeVar

from ..address import address_for, require_address
from ..config import PoolParams
from ..dao import TrojanDao
from ..errors import AuthorizationError, ReentrancyError, SequencingError, ValidationError
from ..events import (EV_POOL_ADD_KEEPERS, EV_POOL_DEPOSIT, EV_POOL_KEEPER_WITHDRAW, EV_POOL_REMOVE_KEEPERS,
                      EV_POOL_SHARES_BURNED, EV_POOL_SHARES_MINTED, EV_POOL_SYNC, EV_POOL_WITHDRAW, EventLog)
from ..ledger import safe_transfer, safe_transfer_from
from ..math import require_u256
from ..math.safe_uint import u256_add, u256_mul_div_down, u256_sub
from ..metrics import POOL_GRANT_SHARES, POOL_OPS, POOL_TOTAL_SHARES
from ..state.journal import Journal, Journaled

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class Donor:
    shares: int = 0
    keepers: Set[str] = field(default_factory=set)


def nonreentrant(fn: F) -> F:
    """Hold the pool lock, then run the call atomically."""

    @functools.wraps(fn)
    def wrapper(self: "TrojanPool", *args: Any, **kwargs: Any) -> Any:
        with self._lock(fn.__name__):
            with self.journal.atomic():
                return fn(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class TrojanPool(Journaled):
    _journaled_fields = ("_donors", "_total_pool_shares", "_current_proposal_index")

    def __init__(
        self,
        dao: TrojanDao,
        params: Optional[PoolParams] = None,
        *,
        address: Optional[str] = None,
        journal: Optional[Journal] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.params = params or PoolParams()
        self.params.validate()
        self.dao = dao
        self.approved_token = dao.approved_token
        self.address = address or address_for(f"trojan.pool:{dao.address}")
        self.journal = journal or dao.journal
        self.events = events or dao.events

        self._donors: Dict[str, Donor] = {}
        self._total_pool_shares = 0
        self._current_proposal_index = 0
        self._locked_by: Optional[str] = None
        self.journal.register(self, self.events)

    # ------------------------------------------------------------------ guards

    @contextmanager
    def _lock(self, op: str) -> Iterator[None]:
        if self._locked_by is not None:
            raise ReentrancyError(
                "pool call re-entered", details={"op": op, "in_flight": self._locked_by}
            )
        self._locked_by = op
        try:
            yield
        finally:
            self._locked_by = None

    def _require_active(self) -> None:
        if self._total_pool_shares == 0:
            raise SequencingError("pool is not active")

    # ------------------------------------------------------------------ views

    @property
    def total_pool_shares(self) -> int:
        return self._total_pool_shares

    @property
    def current_proposal_index(self) -> int:
        return self._current_proposal_index

    def is_active(self) -> bool:
        return self._total_pool_shares > 0

    def balance(self) -> int:
        return self.approved_token.balance_of(self.address)

    def donor(self, address: str) -> Donor:
        return copy.deepcopy(self._donors.get(address, Donor()))

    def donor_shares(self, address: str) -> int:
        d = self._donors.get(address)
        return d.shares if d is not None else 0

    def keepers(self, donor: str) -> FrozenSet[str]:
        d = self._donors.get(donor)
        return frozenset(d.keepers) if d is not None else frozenset()

    def is_keeper(self, donor: str, keeper: str) -> bool:
        return keeper in self.keepers(donor)

    def donors(self) -> Dict[str, int]:
        return {a: d.shares for a, d in sorted(self._donors.items())}

    # ------------------------------------------------------------------ share ledger

    def _mint_shares(self, recipient: str, shares: int) -> None:
        new_total = u256_add(self._total_pool_shares, shares)
        if new_total > self.params.max_shares:
            raise ValidationError(
                "pool share ceiling exceeded", details={"total": new_total, "max": self.params.max_shares}
            )
        donor = self._donors.setdefault(recipient, Donor())
        donor.shares = u256_add(donor.shares, shares)
        self._total_pool_shares = new_total
        self.events.emit(
            self.address,
            EV_POOL_SHARES_MINTED,
            {"shares": shares, "recipient": recipient, "total_pool_shares": new_total},
        )

    def _burn_shares(self, donor_address: str, shares: int) -> None:
        donor = self._donors.get(donor_address)
        held = donor.shares if donor is not None else 0
        if donor is None or held < shares:
            raise ValidationError("insufficient pool shares", details={"held": held, "requested": shares})
        donor.shares = u256_sub(donor.shares, shares)
        self._total_pool_shares = u256_sub(self._total_pool_shares, shares)
        self.events.emit(
            self.address,
            EV_POOL_SHARES_BURNED,
            {"shares": shares, "recipient": donor_address, "total_pool_shares": self._total_pool_shares},
        )

    def _redeem(self, donor_address: str, shares: int) -> int:
        require_u256(shares)
        total = self._total_pool_shares
        amount = u256_mul_div_down(self.balance(), shares, total)
        self._burn_shares(donor_address, shares)
        safe_transfer(self.approved_token, self.address, donor_address, amount)
        return amount

    # ------------------------------------------------------------------ entry points

    @nonreentrant
    def activate(self, caller: str, initial_tokens: int, initial_shares: int) -> None:
        """Seed the pool: pull `initial_tokens` from the caller and mint `initial_shares` to them."""
        if self._total_pool_shares != 0:
            raise SequencingError("pool has already been activated")
        require_u256(initial_tokens, initial_shares)
        if initial_shares == 0:
            raise ValidationError("initial_shares must be positive")

        safe_transfer_from(self.approved_token, self.address, caller, self.address, initial_tokens)
        self._mint_shares(caller, initial_shares)

        POOL_OPS.labels(op="activate").inc()
        POOL_TOTAL_SHARES.set(self._total_pool_shares)
        log.info("pool %s activated by %s with %d tokens / %d shares",
                 self.address, caller, initial_tokens, initial_shares)

    @nonreentrant
    def sync(self, caller: str, to_index: int) -> int:
        """
        Mint grant shares for processed proposals in [current_proposal_index, to_index).
        Stops at the first unprocessed proposal. Returns the new current index.
        """
        self._require_active()
        queue_length = self.dao.proposal_queue_length()
        if not isinstance(to_index, int) or to_index < 0 or to_index > queue_length:
            raise ValidationError(
                "to_index beyond proposal queue", details={"to_index": to_index, "queue_length": queue_length}
            )

        i = self._current_proposal_index
        granted = 0
        while i < to_index:
            p = self.dao.proposal(i)
            if not p.processed:
                break
            if p.did_pass and not p.aborted and p.token_tribute == 0 and p.shares_requested > 0:
                shares = u256_mul_div_down(
                    self._total_pool_shares, p.shares_requested, p.max_total_shares_at_yes_vote
                )
                if shares > 0:
                    self._mint_shares(p.applicant, shares)
                    granted += shares
            i += 1
        self._current_proposal_index = i

        self.events.emit(self.address, EV_POOL_SYNC, {"current_proposal_index": i})
        POOL_OPS.labels(op="sync").inc()
        POOL_GRANT_SHARES.inc(granted)
        POOL_TOTAL_SHARES.set(self._total_pool_shares)
        log.info("pool synced to proposal %d by %s (%d grant shares)", i, caller, granted)
        return i

    @nonreentrant
    def deposit(self, caller: str, token_amount: int) -> int:
        """Buy in at the current share price. Returns shares minted."""
        self._require_active()
        require_u256(token_amount)

        shares = u256_mul_div_down(self._total_pool_shares, token_amount, self.balance())
        safe_transfer_from(self.approved_token, self.address, caller, self.address, token_amount)
        self._mint_shares(caller, shares)

        self.events.emit(
            self.address, EV_POOL_DEPOSIT, {"donor": caller, "token_amount": token_amount, "shares": shares}
        )
        POOL_OPS.labels(op="deposit").inc()
        POOL_TOTAL_SHARES.set(self._total_pool_shares)
        return shares

    @nonreentrant
    def withdraw(self, caller: str, shares: int) -> int:
        """Burn the caller's shares and pay out their slice of the pool. Returns tokens paid."""
        self._require_active()
        amount = self._redeem(caller, shares)

        self.events.emit(self.address, EV_POOL_WITHDRAW, {"donor": caller, "shares": shares, "amount": amount})
        POOL_OPS.labels(op="withdraw").inc()
        POOL_TOTAL_SHARES.set(self._total_pool_shares)
        return amount

    @nonreentrant
    def keeper_withdraw(self, caller: str, shares: int, recipient: str) -> int:
        """Withdraw on behalf of `recipient`; proceeds always go to the donor."""
        self._require_active()
        if not self.is_keeper(recipient, caller):
            raise AuthorizationError("caller is not a keeper of the donor", caller=caller,
                                     details={"donor": recipient})
        amount = self._redeem(recipient, shares)

        self.events.emit(
            self.address,
            EV_POOL_KEEPER_WITHDRAW,
            {"donor": recipient, "keeper": caller, "shares": shares, "amount": amount},
        )
        POOL_OPS.labels(op="keeper_withdraw").inc()
        POOL_TOTAL_SHARES.set(self._total_pool_shares)
        return amount

    @nonreentrant
    def add_keepers(self, caller: str, keepers: Iterable[str]) -> None:
        self._require_active()
        added = [require_address(k, "keeper") for k in keepers]
        donor = self._donors.setdefault(caller, Donor())
        donor.keepers.update(added)
        self.events.emit(self.address, EV_POOL_ADD_KEEPERS, {"donor": caller, "keepers": sorted(added)})

    @nonreentrant
    def remove_keepers(self, caller: str, keepers: Iterable[str]) -> None:
        self._require_active()
        removed = list(keepers)
        donor = self._donors.get(caller)
        if donor is not None:
            donor.keepers.difference_update(removed)
        self.events.emit(self.address, EV_POOL_REMOVE_KEEPERS, {"donor": caller, "keepers": sorted(removed)})


__all__ = ["Donor", "TrojanPool", "nonreentrant"]
