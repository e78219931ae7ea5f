from __future__ import annotations

"""
Wiring for a complete Trojan deployment.

Construction is acyclic; nothing references a component that does not exist
yet:

    1) shared Journal and EventLog
    2) collateral ledger (in-memory unless one is supplied)
    3) TrojanToken over the collateral, with no pool yet
    4) TrojanDao whose approved token is the TrojanToken (creates its GuildBank)
    5) TrojanPool over the DAO
    6) token.bind_pool(pool) and tax exemptions for the DAO, bank and pool

Every component shares the journal, so an operation that touches several of
them (a mint that deposits its tax into the pool) commits or rolls back as one.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .address import address_for, require_address
from .clock import Clock, ManualClock
from .config import TrojanConfig
from .dao import TrojanDao
from .errors import ValidationError
from .events import EventLog
from .guild_bank import GuildBank
from .ledger import InMemoryLedger, Ledger
from .pool import TrojanPool
from .state.journal import Journal
from .token import TrojanToken

log = logging.getLogger(__name__)


@dataclass
class TrojanSystem:
    config: TrojanConfig
    journal: Journal
    events: EventLog
    clock: Clock
    collateral: Ledger
    token: TrojanToken
    dao: TrojanDao
    pool: TrojanPool

    @property
    def guild_bank(self) -> GuildBank:
        return self.dao.guild_bank

    def advance_periods(self, periods: int) -> int:
        """Move a ManualClock forward by whole governance periods. Returns the new period."""
        if not isinstance(self.clock, ManualClock):
            raise ValidationError("only a ManualClock can be advanced")
        self.clock.advance(periods * self.config.governance.period_duration)
        return self.dao.current_period()


def build_system(
    summoner: str,
    config: Optional[TrojanConfig] = None,
    *,
    owner: Optional[str] = None,
    clock: Optional[Clock] = None,
    collateral: Optional[Ledger] = None,
) -> TrojanSystem:
    """
    Build and wire token, DAO and pool. `owner` administers the token
    (exemptions, pool binding) and defaults to the summoner.
    """
    require_address(summoner, "summoner")
    cfg = config or TrojanConfig()
    cfg.validate()
    owner = owner or summoner
    clock = clock or ManualClock()

    journal = Journal()
    events = EventLog()
    journal.register(events)

    if collateral is None:
        collateral = InMemoryLedger("WETH", address=address_for("trojan.collateral"), journal=journal, events=events)

    token = TrojanToken(collateral, owner, cfg.token, journal=journal, events=events)
    dao = TrojanDao(summoner, token, cfg.governance, clock=clock, journal=journal, events=events)
    pool = TrojanPool(dao, cfg.pool, journal=journal, events=events)

    token.bind_pool(owner, pool)
    for account in (dao.address, dao.guild_bank.address, pool.address):
        token.set_tax_exempt(owner, account, True)

    log.info("trojan system wired: token=%s dao=%s bank=%s pool=%s",
             token.address, dao.address, dao.guild_bank.address, pool.address)
    return TrojanSystem(
        config=cfg,
        journal=journal,
        events=events,
        clock=clock,
        collateral=collateral,
        token=token,
        dao=dao,
        pool=pool,
    )


__all__ = ["TrojanSystem", "build_system"]
