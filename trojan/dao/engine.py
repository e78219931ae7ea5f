from __future__ import annotations

"""
Trojan governance engine
------------------------

Membership registry, proposal queue, voting state machine, settlement and
ragequit. Shares are the unit of ownership of the GuildBank: a member can at
any time burn shares and walk away with `floor(bank_balance * shares / total)`
of the pooled currency.

Lifecycle of a proposal (periods are `(now - summoning_time) // period_duration`)

    PENDING      current <  starting_period
    VOTING       starting_period <= current < starting_period + voting
    GRACE        ... < starting_period + voting + grace
    PROCESSABLE  current >= starting_period + voting + grace, not processed
    PASSED / FAILED / ABORTED once processed

Proposals are processed strictly in index order. `starting_period` is
`max(current_period, previous.starting_period) + 1`, so windows of consecutive
proposals never start in the same period.

Funds
  • submit_proposal pulls the proposal deposit from the submitting delegate and
    the tribute from the applicant; the engine escrows both.
  • process_proposal sends the tribute to the GuildBank (pass) or back to the
    applicant (fail/abort), pays the processing reward to the caller and the
    rest of the deposit to the proposer.
  • anything the engine holds beyond the escrow of unprocessed proposals
    (rebates earned on a redistributing currency, stray transfers) is swept
    into the GuildBank at the end of process_proposal.
  • ragequit is the only way value leaves the GuildBank.

Every entry point is atomic: state changes are journaled and rolled back when
any step (including a ledger transfer) fails.
"""

import copy
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from ..address import address_for, require_address
from ..clock import Clock
from ..config import GovernanceParams
from ..errors import AuthorizationError, ExternalTransferError, SequencingError, ValidationError
from ..events import (EV_ABORT, EV_PROCESS_PROPOSAL, EV_RAGEQUIT, EV_SUBMIT_PROPOSAL, EV_SUBMIT_VOTE,
                      EV_SUMMON_COMPLETE, EV_UPDATE_DELEGATE_KEY, EventLog)
from ..guild_bank import GuildBank
from ..ledger import Ledger, safe_transfer, safe_transfer_from
from ..math import require_u256
from ..math.safe_uint import u256_add, u256_mul, u256_sub
from ..metrics import DAO_TOTAL_SHARES, PROPOSALS_PROCESSED, PROPOSALS_SUBMITTED, RAGEQUITS, SHARES_BURNED, VOTES
from ..state.journal import Journal, Journaled, transactional
from .types import Member, Proposal, ProposalState, Vote

log = logging.getLogger(__name__)


class TrojanDao(Journaled):
    """
    The governance engine. The summoner starts with one share and is its own
    delegate; every other member joins through a passed proposal.
    """

    _journaled_fields = (
        "_members",
        "_member_by_delegate",
        "_proposals",
        "_total_shares",
        "_total_shares_requested",
    )

    def __init__(
        self,
        summoner: str,
        approved_token: Ledger,
        params: Optional[GovernanceParams] = None,
        *,
        clock: Clock,
        address: Optional[str] = None,
        journal: Optional[Journal] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        require_address(summoner, "summoner")
        if approved_token is None:
            raise ValidationError("approved_token is required")
        self.params = params or GovernanceParams()
        self.params.validate()

        self.approved_token = approved_token
        self.clock = clock
        self.address = address or address_for(f"trojan.dao:{summoner}")
        self.journal = journal or Journal()
        self.events = events or EventLog()
        self.summoning_time = clock.now()

        self._members: Dict[str, Member] = {}
        self._member_by_delegate: Dict[str, str] = {}
        self._proposals: List[Proposal] = []
        self._total_shares = 0
        self._total_shares_requested = 0

        self.guild_bank = GuildBank(
            approved_token,
            owner=self.address,
            address=address_for(f"trojan.bank:{self.address}"),
            journal=self.journal,
            events=self.events,
        )
        self.journal.register(self, self.events)

        self._members[summoner] = Member(delegate_key=summoner, shares=1)
        self._member_by_delegate[summoner] = summoner
        self._total_shares = 1

        self.events.emit(self.address, EV_SUMMON_COMPLETE, {"summoner": summoner, "shares": 1})
        DAO_TOTAL_SHARES.set(self._total_shares)
        log.info("dao %s summoned by %s (bank=%s)", self.address, summoner, self.guild_bank.address)

    # ------------------------------------------------------------------ guards

    def _delegate_member(self, caller: str) -> Tuple[str, Member]:
        """(member_address, member) for a delegate key whose member holds shares."""
        member_address = self._member_by_delegate.get(caller)
        member = self._members.get(member_address) if member_address is not None else None
        if member is None or member.shares == 0:
            raise AuthorizationError("caller is not a delegate of a shareholder", caller=caller)
        return member_address, member

    def _shareholder(self, caller: str) -> Member:
        member = self._members.get(caller)
        if member is None or member.shares == 0:
            raise AuthorizationError("caller is not a shareholder", caller=caller)
        return member

    def _proposal_at(self, index: int) -> Proposal:
        if not isinstance(index, int) or index < 0 or index >= len(self._proposals):
            raise ValidationError(
                "proposal does not exist", details={"index": index, "queue_length": len(self._proposals)}
            )
        return self._proposals[index]

    # ------------------------------------------------------------------ views

    @property
    def total_shares(self) -> int:
        return self._total_shares

    @property
    def total_shares_requested(self) -> int:
        return self._total_shares_requested

    def current_period(self) -> int:
        return (self.clock.now() - self.summoning_time) // self.params.period_duration

    def proposal_queue_length(self) -> int:
        return len(self._proposals)

    def escrowed(self) -> int:
        """Deposits and tributes held for proposals that are not processed yet."""
        total = 0
        for proposal in reversed(self._proposals):
            if proposal.processed:
                break
            total = u256_add(total, u256_add(self.params.proposal_deposit, proposal.token_tribute))
        return total

    def member(self, address: str) -> Optional[Member]:
        m = self._members.get(address)
        return copy.deepcopy(m) if m is not None else None

    def member_address_by_delegate_key(self, delegate_key: str) -> Optional[str]:
        return self._member_by_delegate.get(delegate_key)

    def members(self) -> Iterator[Tuple[str, Member]]:
        for address in sorted(self._members):
            yield address, copy.deepcopy(self._members[address])

    def proposal(self, index: int) -> Proposal:
        return copy.deepcopy(self._proposal_at(index))

    def member_proposal_vote(self, member: str, index: int) -> Vote:
        return self._proposal_at(index).vote_of(member)

    def has_voting_period_expired(self, starting_period: int) -> bool:
        return self.current_period() >= starting_period + self.params.voting_period_length

    def can_ragequit(self, highest_index_yes_vote: int) -> bool:
        # Nothing has ever been proposed, so no vote can be pending.
        if not self._proposals and highest_index_yes_vote == 0:
            return True
        return self._proposal_at(highest_index_yes_vote).processed

    def proposal_state(self, index: int) -> ProposalState:
        p = self._proposal_at(index)
        if p.processed:
            if p.aborted:
                return ProposalState.ABORTED
            return ProposalState.PASSED if p.did_pass else ProposalState.FAILED
        current = self.current_period()
        if current < p.starting_period:
            return ProposalState.PENDING
        if current < p.starting_period + self.params.voting_period_length:
            return ProposalState.VOTING
        if current < p.starting_period + self.params.voting_period_length + self.params.grace_period_length:
            return ProposalState.GRACE
        return ProposalState.PROCESSABLE

    # ------------------------------------------------------------------ proposals

    @transactional
    def submit_proposal(
        self,
        caller: str,
        applicant: str,
        token_tribute: int,
        shares_requested: int,
        details: str = "",
    ) -> int:
        """Queue a proposal on behalf of the caller's member. Returns its index."""
        member_address, _ = self._delegate_member(caller)
        require_address(applicant, "applicant")
        require_u256(token_tribute, shares_requested)

        # Outstanding plus in-flight shares stay under the ceiling.
        committed = u256_add(self._total_shares, self._total_shares_requested)
        if u256_add(committed, shares_requested) > self.params.max_shares:
            raise ValidationError(
                "too many shares requested",
                details={"requested": shares_requested, "committed": committed, "max": self.params.max_shares},
            )
        self._total_shares_requested = u256_add(self._total_shares_requested, shares_requested)

        safe_transfer_from(self.approved_token, self.address, caller, self.address, self.params.proposal_deposit)
        safe_transfer_from(self.approved_token, self.address, applicant, self.address, token_tribute)

        starting_period = self.current_period()
        if self._proposals:
            starting_period = max(starting_period, self._proposals[-1].starting_period)
        starting_period += 1

        proposal = Proposal(
            proposer=member_address,
            applicant=applicant,
            shares_requested=shares_requested,
            starting_period=starting_period,
            token_tribute=token_tribute,
            details=details,
        )
        self._proposals.append(proposal)
        index = len(self._proposals) - 1

        self.events.emit(
            self.address,
            EV_SUBMIT_PROPOSAL,
            {
                "index": index,
                "delegate_key": caller,
                "member": member_address,
                "applicant": applicant,
                "token_tribute": token_tribute,
                "shares_requested": shares_requested,
            },
        )
        PROPOSALS_SUBMITTED.inc()
        log.info("proposal %d submitted by %s for %s (%d shares, tribute %d, starts %d)",
                 index, member_address, applicant, shares_requested, token_tribute, starting_period)
        return index

    @transactional
    def submit_vote(self, caller: str, index: int, vote: int) -> None:
        member_address, member = self._delegate_member(caller)
        proposal = self._proposal_at(index)

        if isinstance(vote, bool) or not isinstance(vote, int) or vote < 0 or vote > 2:
            raise ValidationError("vote code must be less than 3", details={"vote": vote})
        ballot = Vote(vote)
        if ballot is Vote.NULL:
            raise ValidationError("vote must be either Yes or No")

        if self.current_period() < proposal.starting_period:
            raise SequencingError("voting period has not started", details={"index": index})
        if self.has_voting_period_expired(proposal.starting_period):
            raise SequencingError("voting period has expired", details={"index": index})
        if proposal.vote_of(member_address) is not Vote.NULL:
            raise SequencingError("member has already voted on this proposal",
                                  details={"index": index, "member": member_address})
        if proposal.aborted:
            raise SequencingError("proposal has been aborted", details={"index": index})

        proposal.votes_by_member[member_address] = ballot
        if ballot is Vote.YES:
            proposal.yes_votes = u256_add(proposal.yes_votes, member.shares)
            if index > member.highest_index_yes_vote:
                member.highest_index_yes_vote = index
            if self._total_shares > proposal.max_total_shares_at_yes_vote:
                proposal.max_total_shares_at_yes_vote = self._total_shares
        else:
            proposal.no_votes = u256_add(proposal.no_votes, member.shares)

        self.events.emit(
            self.address,
            EV_SUBMIT_VOTE,
            {"index": index, "delegate_key": caller, "member": member_address, "vote": int(ballot)},
        )
        VOTES.labels(vote=ballot.name.lower()).inc()

    @transactional
    def process_proposal(self, caller: str, index: int) -> bool:
        """Settle a proposal whose grace period has ended. Returns whether it passed."""
        proposal = self._proposal_at(index)
        p = self.params

        if self.current_period() < proposal.starting_period + p.voting_period_length + p.grace_period_length:
            raise SequencingError("proposal is not ready to be processed", details={"index": index})
        if proposal.processed:
            raise SequencingError("proposal has already been processed", details={"index": index})
        if index > 0 and not self._proposals[index - 1].processed:
            raise SequencingError("previous proposal must be processed", details={"index": index})

        proposal.processed = True
        self._total_shares_requested = u256_sub(self._total_shares_requested, proposal.shares_requested)

        did_pass = proposal.yes_votes > proposal.no_votes
        # Dilution guard: too many shares left after the last Yes vote.
        if u256_mul(self._total_shares, p.dilution_bound) < proposal.max_total_shares_at_yes_vote:
            did_pass = False

        if did_pass and not proposal.aborted:
            proposal.did_pass = True
            self._admit(proposal.applicant, proposal.shares_requested)
            self._total_shares = u256_add(self._total_shares, proposal.shares_requested)
            safe_transfer(self.approved_token, self.address, self.guild_bank.address, proposal.token_tribute)
        else:
            safe_transfer(self.approved_token, self.address, proposal.applicant, proposal.token_tribute)

        safe_transfer(self.approved_token, self.address, caller, p.processing_reward)
        safe_transfer(
            self.approved_token,
            self.address,
            proposal.proposer,
            u256_sub(p.proposal_deposit, p.processing_reward),
        )
        self._sweep_surplus()

        self.events.emit(
            self.address,
            EV_PROCESS_PROPOSAL,
            {
                "index": index,
                "applicant": proposal.applicant,
                "member": proposal.proposer,
                "token_tribute": proposal.token_tribute,
                "shares_requested": proposal.shares_requested,
                "did_pass": proposal.did_pass,
            },
        )
        outcome = "aborted" if proposal.aborted else ("passed" if proposal.did_pass else "failed")
        PROPOSALS_PROCESSED.labels(outcome=outcome).inc()
        DAO_TOTAL_SHARES.set(self._total_shares)
        log.info("proposal %d processed by %s: %s (total shares %d)", index, caller, outcome, self._total_shares)
        return proposal.did_pass

    def _sweep_surplus(self) -> int:
        """
        Move whatever the engine holds beyond its escrow into the GuildBank.
        With a redistributing currency the escrow earns rebates while it waits.
        """
        surplus = self.approved_token.balance_of(self.address) - self.escrowed()
        if surplus <= 0:
            return 0
        safe_transfer(self.approved_token, self.address, self.guild_bank.address, surplus)
        log.info("swept %d surplus into guild bank %s", surplus, self.guild_bank.address)
        return surplus

    def _admit(self, applicant: str, shares: int) -> None:
        existing = self._members.get(applicant)
        if existing is not None:
            existing.shares = u256_add(existing.shares, shares)
            return
        # An existing member using the applicant's address as delegate key is
        # re-pointed to itself before the new member claims that key.
        holder = self._member_by_delegate.get(applicant)
        if holder is not None and holder in self._members:
            self._members[holder].delegate_key = holder
            self._member_by_delegate[holder] = holder
        self._members[applicant] = Member(delegate_key=applicant, shares=shares)
        self._member_by_delegate[applicant] = applicant

    @transactional
    def abort(self, caller: str, index: int) -> None:
        """Withdraw a proposal during its abort window and reclaim the tribute."""
        proposal = self._proposal_at(index)
        if caller != proposal.applicant:
            raise AuthorizationError("only the applicant can abort", caller=caller)
        if self.current_period() >= proposal.starting_period + self.params.abort_window:
            raise SequencingError("abort window has passed", details={"index": index})
        if proposal.aborted:
            raise SequencingError("proposal has already been aborted", details={"index": index})

        refund = proposal.token_tribute
        proposal.token_tribute = 0
        proposal.aborted = True
        safe_transfer(self.approved_token, self.address, proposal.applicant, refund)

        self.events.emit(self.address, EV_ABORT, {"index": index, "applicant": caller})
        log.info("proposal %d aborted by applicant %s (refund %d)", index, caller, refund)

    # ------------------------------------------------------------------ members

    @transactional
    def ragequit(self, caller: str, shares_to_burn: int) -> None:
        """Burn shares and receive the matching slice of the GuildBank."""
        member = self._shareholder(caller)
        require_u256(shares_to_burn)
        if member.shares < shares_to_burn:
            raise ValidationError(
                "insufficient shares", details={"held": member.shares, "requested": shares_to_burn}
            )
        if not self.can_ragequit(member.highest_index_yes_vote):
            raise SequencingError(
                "cannot ragequit until highest index proposal member voted YES on is processed",
                details={"highest_index_yes_vote": member.highest_index_yes_vote},
            )

        initial_total = self._total_shares
        member.shares = u256_sub(member.shares, shares_to_burn)
        self._total_shares = u256_sub(self._total_shares, shares_to_burn)

        if not self.guild_bank.withdraw(self.address, caller, shares_to_burn, initial_total):
            raise ExternalTransferError("guild bank withdrawal failed", op="withdraw", amount=shares_to_burn)

        self.events.emit(self.address, EV_RAGEQUIT, {"member": caller, "shares_to_burn": shares_to_burn})
        RAGEQUITS.inc()
        SHARES_BURNED.inc(shares_to_burn)
        DAO_TOTAL_SHARES.set(self._total_shares)
        log.info("member %s ragequit %d of %d shares", caller, shares_to_burn, initial_total)

    @transactional
    def update_delegate_key(self, caller: str, new_delegate_key: str) -> None:
        member = self._shareholder(caller)
        require_address(new_delegate_key, "new_delegate_key")

        if new_delegate_key != caller:
            if new_delegate_key in self._members:
                raise ValidationError("cannot overwrite existing members",
                                      details={"new_delegate_key": new_delegate_key})
            holder = self._member_by_delegate.get(new_delegate_key)
            if holder is not None and holder in self._members:
                raise ValidationError("cannot overwrite existing delegate keys",
                                      details={"new_delegate_key": new_delegate_key})

        self._member_by_delegate.pop(member.delegate_key, None)
        self._member_by_delegate[new_delegate_key] = caller
        member.delegate_key = new_delegate_key

        self.events.emit(self.address, EV_UPDATE_DELEGATE_KEY,
                         {"member": caller, "new_delegate_key": new_delegate_key})


__all__ = ["TrojanDao"]
