from __future__ import annotations

import pytest

from trojan.clock import SystemClock
from trojan.config import GovernanceParams, PoolParams, TrojanConfig
from trojan.dao import Vote
from trojan.errors import SequencingError, ValidationError
from trojan.system import TrojanSystem, build_system

UNIT = 10**18
CONFIG = TrojanConfig(
    governance=GovernanceParams(
        period_duration=10,
        voting_period_length=3,
        grace_period_length=2,
        abort_window=1,
        proposal_deposit=10 * UNIT,
        dilution_bound=3,
        processing_reward=UNIT,
    )
)


def _buy(sysm: TrojanSystem, who: str, amount: int) -> int:
    price = sysm.token.price_to_mint(amount)
    sysm.collateral.mint(who, price)
    sysm.collateral.approve(who, sysm.token.address, price)
    return sysm.token.mint_trojan(who, amount)


def _seed_pool(sysm: TrojanSystem, who: str, tokens: int, shares: int) -> None:
    sysm.token.approve(who, sysm.pool.address, tokens)
    sysm.pool.activate(who, tokens, shares)


def _fund_deposit(sysm: TrojanSystem, funder: str, member: str) -> None:
    deposit = sysm.config.governance.proposal_deposit
    sysm.token.transfer(funder, member, deposit + sysm.token.transfer_tax(member, deposit))
    sysm.token.approve(member, sysm.dao.address, deposit)


def _pass(sysm: TrojanSystem, index: int, voters=("summoner",)) -> None:
    g = sysm.config.governance
    sysm.advance_periods(1)
    for voter in voters:
        sysm.dao.submit_vote(voter, index, Vote.YES)
    sysm.advance_periods(g.voting_period_length + g.grace_period_length)
    assert sysm.dao.process_proposal("summoner", index) is True


def test_wiring_and_exemptions():
    sysm = build_system("summoner", CONFIG)
    token, dao, pool = sysm.token, sysm.dao, sysm.pool

    assert dao.approved_token is token
    assert pool.approved_token is token
    assert pool.dao is dao
    assert token.pool is pool
    assert sysm.guild_bank is dao.guild_bank
    assert token.owner == "summoner"
    for account in (token.address, dao.address, dao.guild_bank.address, pool.address):
        assert token.is_tax_exempt(account)
    assert not token.is_tax_exempt("summoner")
    assert sysm.events.names() == ["SummonComplete", "PoolBound", "TaxExemption", "TaxExemption", "TaxExemption"]


def test_pool_binds_once():
    sysm = build_system("summoner", CONFIG)
    with pytest.raises(SequencingError):
        sysm.token.bind_pool("summoner", sysm.pool)


def test_tax_is_held_until_pool_is_active_then_forwarded():
    sysm = build_system("summoner", CONFIG)
    token, pool = sysm.token, sysm.pool

    _buy(sysm, "trader", 1000 * UNIT)
    assert token.balance_of(token.address) == 10 * UNIT
    assert token.dao_tax_forwarded == 0
    assert sysm.events.last("DaoTax") is None

    _seed_pool(sysm, "trader", 100 * UNIT, 100 * UNIT)
    held = token.balance_of(token.address)

    _buy(sysm, "trader", 10 * UNIT)
    ev = sysm.events.last("DaoTax")
    assert ev is not None
    assert ev.args["amount"] >= held + UNIT // 10
    assert token.balance_of(token.address) == 0
    assert token.dao_tax_forwarded == ev.args["amount"]
    assert pool.donor_shares(token.address) == ev.args["shares"] > 0
    assert sum(pool.donors().values()) == pool.total_pool_shares


def test_sell_tax_is_forwarded_to_active_pool():
    sysm = build_system("summoner", CONFIG)
    token = sysm.token
    _buy(sysm, "trader", 1000 * UNIT)
    _seed_pool(sysm, "trader", 100 * UNIT, 100 * UNIT)
    _buy(sysm, "trader", UNIT)
    forwarded = token.dao_tax_forwarded

    token.sell_trojan("trader", 100 * UNIT)
    assert token.dao_tax_forwarded == forwarded + UNIT
    assert token.balance_of(token.address) == 0


def test_grant_round_mints_dao_and_pool_shares():
    sysm = build_system("summoner", CONFIG)
    dao, pool, token = sysm.dao, sysm.pool, sysm.token
    _buy(sysm, "trader", 1000 * UNIT)
    _seed_pool(sysm, "trader", 100 * UNIT, 100 * UNIT)
    _fund_deposit(sysm, "trader", "summoner")

    index = dao.submit_proposal("summoner", "grantee", 0, 5, "grant")
    assert token.balance_of(dao.address) >= 10 * UNIT
    _pass(sysm, index)

    pool_total = pool.total_pool_shares
    pool.sync("anyone", dao.proposal_queue_length())
    assert dao.total_shares == 6
    assert dao.member("grantee").shares == 5
    assert pool.donor_shares("grantee") == pool_total * 5
    assert pool.current_proposal_index == 1
    # The summoner processed its own proposal: reward plus refunded deposit.
    assert token.balance_of("summoner") >= 10 * UNIT


def test_rebates_earned_on_escrow_end_up_in_the_bank():
    sysm = build_system("summoner", CONFIG)
    dao, token, bank = sysm.dao, sysm.token, sysm.guild_bank
    _buy(sysm, "trader", 1000 * UNIT)
    _fund_deposit(sysm, "trader", "summoner")

    index = dao.submit_proposal("summoner", "grantee", 0, 5, "grant")
    token.transfer("trader", "bob", 500 * UNIT)  # taxed; the escrowed deposit earns a rebate
    assert token.balance_of(dao.address) > 10 * UNIT

    _pass(sysm, index)
    assert token.balance_of(dao.address) == 0
    assert bank.balance() > 0
    assert sysm.events.last("Transfer").args["to"] == bank.address


def test_ragequit_pays_exact_share_of_bank_in_tokens():
    sysm = build_system("summoner", CONFIG)
    dao, token, bank = sysm.dao, sysm.token, sysm.guild_bank
    _buy(sysm, "alice", 500 * UNIT)
    _buy(sysm, "trader", 100 * UNIT)
    _fund_deposit(sysm, "trader", "summoner")

    tribute = 100 * UNIT
    token.approve("alice", dao.address, tribute)
    index = dao.submit_proposal("summoner", "alice", tribute, 3)
    _pass(sysm, index)
    assert bank.balance() >= tribute

    before = token.balance_of("alice")
    expected = bank.balance() * 3 // 4
    dao.ragequit("alice", 3)
    assert token.balance_of("alice") - before == expected
    assert dao.total_shares == 1
    assert sysm.events.last("Withdrawal").args == {"receiver": "alice", "amount": expected}


def test_failure_in_pool_rolls_back_the_whole_mint():
    cfg = TrojanConfig(governance=CONFIG.governance, pool=PoolParams(max_shares=1000))
    sysm = build_system("summoner", cfg)
    token = sysm.token
    _buy(sysm, "trader", 1000 * UNIT)
    _seed_pool(sysm, "trader", 100 * UNIT, 1000)

    price = token.price_to_mint(10 * UNIT)
    sysm.collateral.mint("trader", price)
    sysm.collateral.approve("trader", token.address, price)
    supply, reserve, n_events = token.total_supply(), token.reserve(), len(sysm.events)
    held = token.balance_of(token.address)

    # Forwarding the tax would push the pool past its share ceiling.
    with pytest.raises(ValidationError):
        token.mint_trojan("trader", 10 * UNIT)

    assert token.total_supply() == supply
    assert token.reserve() == reserve
    assert token.balance_of(token.address) == held
    assert sysm.collateral.balance_of("trader") == price
    assert len(sysm.events) == n_events
    assert sysm.pool.total_pool_shares == 1000


def test_advance_requires_manual_clock():
    sysm = build_system("summoner", CONFIG, clock=SystemClock())
    with pytest.raises(ValidationError):
        sysm.advance_periods(1)


def test_build_rejects_invalid_config():
    bad = TrojanConfig(governance=GovernanceParams(abort_window=50, voting_period_length=10))
    with pytest.raises(ValidationError):
        build_system("summoner", bad)
