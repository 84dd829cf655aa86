"""
QDAO On-Chain Governance

Provides:
  - Member / MembershipLedger                     (members.py)
  - Treasury                                      (treasury.py)
  - ProposalState / Phase / Milestone / Proposal  (proposals.py)
  - VoteRecord / VoteLedger / quadratic_weight    (voting.py)
  - GovernanceEngine                              (engine.py)
"""

from .members import Member, MembershipLedger
from .treasury import Treasury
from .proposals import (
    Milestone,
    Phase,
    Proposal,
    ProposalState,
    ProposalStore,
)
from .voting import (
    VoteLedger,
    VoteRecord,
    proposal_passes,
    quadratic_weight,
    quorum_reached,
    yes_percentage,
)
from .engine import (
    ACTION_ADD_TO_TREASURY,
    ACTION_UPDATE_EXPERT_STATUS,
    GovernanceEngine,
    admin_only,
    allow_all,
)

__all__ = [
    # Members
    "Member",
    "MembershipLedger",
    # Treasury
    "Treasury",
    # Proposals
    "Milestone",
    "Phase",
    "Proposal",
    "ProposalState",
    "ProposalStore",
    # Voting
    "VoteLedger",
    "VoteRecord",
    "proposal_passes",
    "quadratic_weight",
    "quorum_reached",
    "yes_percentage",
    # Engine
    "ACTION_ADD_TO_TREASURY",
    "ACTION_UPDATE_EXPERT_STATUS",
    "GovernanceEngine",
    "admin_only",
    "allow_all",
]
