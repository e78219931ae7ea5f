from __future__ import annotations

import pytest

from trojan.events import EventLog
from trojan.errors import ExternalTransferError
from trojan.ledger import InMemoryLedger, safe_transfer, safe_transfer_from
from trojan.state.journal import Journal, Journaled, transactional


class Counter(Journaled):
    _journaled_fields = ("value", "history")

    def __init__(self, journal: Journal) -> None:
        self.journal = journal
        self.value = 0
        self.history = []
        self.untracked = 0
        journal.register(self)

    @transactional
    def bump(self, by: int, fail: bool = False) -> int:
        self.value += by
        self.history.append(by)
        self.untracked += 1
        if fail:
            raise RuntimeError("boom")
        return self.value


def test_atomic_reverts_every_registered_component():
    journal = Journal()
    events = EventLog()
    journal.register(events)
    a, b = Counter(journal), Counter(journal)

    with pytest.raises(RuntimeError):
        with journal.atomic():
            a.bump(1)
            b.bump(2)
            events.emit("x", "trojan.test.Thing")
            raise RuntimeError("abort")

    assert (a.value, b.value) == (0, 0)
    assert a.history == []
    assert len(events) == 0
    assert journal.depth() == 0


def test_untracked_fields_are_not_rolled_back():
    journal = Journal()
    c = Counter(journal)
    with pytest.raises(RuntimeError):
        c.bump(5, fail=True)
    assert c.value == 0
    assert c.untracked == 1


def test_nested_commit_is_undone_by_outer_revert():
    journal = Journal()
    c = Counter(journal)

    with pytest.raises(RuntimeError):
        with journal.atomic():
            assert c.bump(3) == 3  # inner checkpoint commits
            assert journal.depth() == 1
            raise RuntimeError("outer fails")
    assert c.value == 0


def test_inner_failure_caught_by_caller_keeps_outer_progress():
    journal = Journal()
    c = Counter(journal)

    with journal.atomic():
        c.bump(1)
        with pytest.raises(RuntimeError):
            c.bump(10, fail=True)
        c.bump(2)
    assert c.value == 3
    assert c.history == [1, 2]


def test_register_is_idempotent_and_markers_are_checked():
    journal = Journal()
    c = Counter(journal)
    journal.register(c)
    assert journal.components == (c,)

    with pytest.raises(ValueError):
        journal.revert_to(1)
    with pytest.raises(RuntimeError):
        journal.commit()
    with pytest.raises(RuntimeError):
        journal.revert()


def test_ledger_transfer_failure_leaves_balances_and_log_untouched():
    journal = Journal()
    events = EventLog()
    journal.register(events)
    weth = InMemoryLedger("WETH", journal=journal, events=events)
    weth.mint("alice", 10)
    before = len(events)

    assert weth.transfer("alice", "bob", 11) is False
    assert weth.balance_of("alice") == 10
    assert weth.balance_of("bob") == 0
    assert len(events) == before


def test_guards_turn_rejections_into_errors():
    journal = Journal()
    weth = InMemoryLedger("WETH", journal=journal)
    weth.mint("alice", 10)

    safe_transfer(weth, "alice", "bob", 7)
    assert weth.balance_of("bob") == 7

    with pytest.raises(ExternalTransferError) as ei:
        safe_transfer(weth, "alice", "bob", 11)
    assert ei.value.details == {"op": "transfer", "amount": 11}

    with pytest.raises(ExternalTransferError) as ei:
        safe_transfer(weth, "alice", "bob", -1)
    assert isinstance(ei.value.__cause__, ValueError)

    with pytest.raises(ExternalTransferError) as ei:
        safe_transfer_from(weth, "carol", "alice", "carol", 1)
    assert ei.value.details == {"op": "transfer_from", "amount": 1}


def test_every_checkpoint_snapshots_every_component():
    journal = Journal()
    dumps = []

    class Tracked(Counter):
        def dump(self):
            dumps.append(self)
            return super().dump()

    a, b = Tracked(journal), Tracked(journal)
    a.bump(1)
    assert len(dumps) == 2

    with journal.atomic():
        a.bump(1)
        b.bump(1)
    assert len(dumps) == 2 + 3 * 2
