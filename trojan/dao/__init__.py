"""
trojan.dao — the governance engine (membership, proposal queue, voting, ragequit).
"""

from .engine import TrojanDao
from .types import Member, Proposal, ProposalState, Vote

__all__ = ["TrojanDao", "Member", "Proposal", "ProposalState", "Vote"]
