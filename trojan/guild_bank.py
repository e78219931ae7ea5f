from __future__ import annotations

"""
Trojan GuildBank — the governance treasury
------------------------------------------

Holds the engine's pooled currency. The bank keeps no balance of its own: the
external ledger is the source of truth, and the bank is the only party able to
move value out of its ledger account.

It exposes a single privileged operation, `withdraw`, which pays a receiver
`floor(balance * shares / total_shares)`. Only the owner (the governance
engine) may call it; the engine uses it to settle ragequits.

Failure semantics
  • non-owner caller            -> AuthorizationError
  • total_shares == 0           -> DivideByZero
  • shares > total_shares       -> ValidationError
  • ledger rejects the transfer -> ExternalTransferError (whole operation rolled back)
"""

import logging
from typing import Optional

from .access import Ownable
from .address import address_for, require_address
from .errors import ValidationError
from .events import EV_WITHDRAWAL, EventLog
from .ledger import Ledger, safe_transfer
from .math import require_u256
from .math.safe_uint import u256_mul_div_down
from .state.journal import Journal, Journaled, transactional

log = logging.getLogger(__name__)


class GuildBank(Journaled, Ownable):
    _journaled_fields = ("_owner",)

    def __init__(
        self,
        approved_token: Ledger,
        owner: str,
        *,
        address: Optional[str] = None,
        journal: Optional[Journal] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.approved_token = approved_token
        self.address = address or address_for(f"trojan.bank:{owner}")
        self.journal = journal or Journal()
        self.events = events or EventLog()
        self._init_owner(owner)
        self.journal.register(self, self.events)

    def balance(self) -> int:
        """Currency currently held by the bank on the external ledger."""
        return self.approved_token.balance_of(self.address)

    @transactional
    def withdraw(self, caller: str, receiver: str, shares: int, total_shares: int) -> bool:
        """
        Pay `receiver` its proportional claim on the bank's holdings.

        The claim is computed against `total_shares` as supplied by the owner;
        the engine passes the pre-burn total so the burned shares still count.
        """
        self.require_owner(caller)
        require_address(receiver, "receiver")
        require_u256(shares, total_shares)
        if shares > total_shares:
            raise ValidationError(
                "shares exceed total_shares", details={"shares": shares, "total_shares": total_shares}
            )

        amount = u256_mul_div_down(self.balance(), shares, total_shares)
        self.events.emit(self.address, EV_WITHDRAWAL, {"receiver": receiver, "amount": amount})
        safe_transfer(self.approved_token, self.address, receiver, amount)
        log.info("guild bank paid %d to %s (%d/%d shares)", amount, receiver, shares, total_shares)
        return True


__all__ = ["GuildBank"]
