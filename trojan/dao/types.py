from __future__ import annotations

"""
Governance engine records.

`Member` and `Proposal` are plain mutable dataclasses owned by the engine; the
engine hands out copies from its views so callers cannot mutate live state.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict


class Vote(IntEnum):
    """Ballot codes. `NULL` is the "has not voted" marker and never a valid ballot."""

    NULL = 0
    YES = 1
    NO = 2


class ProposalState(Enum):
    PENDING = "pending"
    VOTING = "voting"
    GRACE = "grace"
    PROCESSABLE = "processable"
    PASSED = "passed"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_processed(self) -> bool:
        return self in (ProposalState.PASSED, ProposalState.FAILED, ProposalState.ABORTED)


@dataclass
class Member:
    delegate_key: str
    shares: int
    exists: bool = True
    highest_index_yes_vote: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Proposal:
    proposer: str
    applicant: str
    shares_requested: int
    starting_period: int
    token_tribute: int
    details: str = ""
    yes_votes: int = 0
    no_votes: int = 0
    processed: bool = False
    did_pass: bool = False
    aborted: bool = False
    max_total_shares_at_yes_vote: int = 0
    votes_by_member: Dict[str, Vote] = field(default_factory=dict)

    def vote_of(self, member: str) -> Vote:
        return self.votes_by_member.get(member, Vote.NULL)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["votes_by_member"] = {m: v.name for m, v in self.votes_by_member.items()}
        return d


__all__ = ["Vote", "ProposalState", "Member", "Proposal"]
