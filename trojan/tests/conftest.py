from __future__ import annotations

from typing import Iterable

import pytest

from trojan.clock import ManualClock
from trojan.config import GovernanceParams
from trojan.dao import TrojanDao, Vote
from trojan.events import EventLog
from trojan.ledger import InMemoryLedger
from trojan.state.journal import Journal

# Short windows keep the period arithmetic readable:
# proposals start at period N, vote in [N, N+3), grace in [N+3, N+5).
PARAMS = GovernanceParams(
    period_duration=10,
    voting_period_length=3,
    grace_period_length=2,
    abort_window=1,
    proposal_deposit=10,
    dilution_bound=3,
    processing_reward=1,
)

GENESIS = 1_000


class Gov:
    """Drives a TrojanDao over an in-memory WETH ledger and a manual clock."""

    def __init__(self, dao: TrojanDao, weth: InMemoryLedger, clock: ManualClock) -> None:
        self.dao = dao
        self.weth = weth
        self.clock = clock

    def fund(self, who: str, amount: int) -> None:
        self.weth.mint(who, amount)
        self.weth.approve(who, self.dao.address, self.weth.allowance(who, self.dao.address) + amount)

    def advance(self, periods: int) -> None:
        self.clock.advance(periods * self.dao.params.period_duration)

    def _goto(self, period: int) -> None:
        target = self.dao.summoning_time + period * self.dao.params.period_duration
        if self.clock.now() < target:
            self.clock.set(target)

    def to_voting(self, index: int) -> None:
        self._goto(self.dao.proposal(index).starting_period)

    def to_processable(self, index: int) -> None:
        p = self.dao.params
        self._goto(self.dao.proposal(index).starting_period + p.voting_period_length + p.grace_period_length)

    def propose(self, delegate: str, applicant: str, shares: int, tribute: int = 0, details: str = "") -> int:
        self.fund(delegate, self.dao.params.proposal_deposit)
        if tribute:
            self.fund(applicant, tribute)
        return self.dao.submit_proposal(delegate, applicant, tribute, shares, details)

    def admit(self, applicant: str, shares: int, tribute: int = 0, voters: Iterable[str] = ("summoner",)) -> int:
        index = self.propose("summoner", applicant, shares, tribute)
        self.to_voting(index)
        for voter in voters:
            self.dao.submit_vote(voter, index, Vote.YES)
        self.to_processable(index)
        assert self.dao.process_proposal("processor", index) is True
        return index


@pytest.fixture
def journal() -> Journal:
    return Journal()


@pytest.fixture
def events(journal: Journal) -> EventLog:
    log = EventLog()
    journal.register(log)
    return log


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(GENESIS)


@pytest.fixture
def weth(journal: Journal, events: EventLog) -> InMemoryLedger:
    return InMemoryLedger("WETH", journal=journal, events=events)


@pytest.fixture
def dao(weth: InMemoryLedger, clock: ManualClock, journal: Journal, events: EventLog) -> TrojanDao:
    return TrojanDao("summoner", weth, PARAMS, clock=clock, journal=journal, events=events)


@pytest.fixture
def gov(dao: TrojanDao, weth: InMemoryLedger, clock: ManualClock) -> Gov:
    return Gov(dao, weth, clock)
