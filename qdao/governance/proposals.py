"""
Governance Proposals

Defines the lifecycle states and phases, milestones, and the Proposal record
that tracks a funding request from draft to execution, plus the store that
assigns sequential proposal ids.
"""

import hashlib
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import (
    InvalidPhaseError,
    InvalidProposalStateError,
    ProposalNotFoundError,
)
from ..logger import get_logger
from ..storage import KeyValueStore

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalState(IntEnum):
    """Overall lifecycle status."""
    DRAFT = 0
    ACTIVE = 1
    PASSED = 2
    REJECTED = 3
    EXECUTED = 4
    CANCELLED = 5


class Phase(IntEnum):
    """Sequential sub-stage. Advanced strictly in order."""
    SUBMISSION = 0
    DISCUSSION = 1
    VOTING = 2
    EXECUTION = 3


_VALID_STATE_TRANSITIONS: Dict[ProposalState, set] = {
    ProposalState.DRAFT:     {ProposalState.ACTIVE, ProposalState.CANCELLED},
    ProposalState.ACTIVE:    {ProposalState.PASSED, ProposalState.REJECTED,
                              ProposalState.CANCELLED},
    ProposalState.PASSED:    {ProposalState.EXECUTED, ProposalState.CANCELLED},
    # Terminal states
    ProposalState.REJECTED:  set(),
    ProposalState.EXECUTED:  set(),
    ProposalState.CANCELLED: set(),
}

_NEXT_PHASE: Dict[Phase, Optional[Phase]] = {
    Phase.SUBMISSION: Phase.DISCUSSION,
    Phase.DISCUSSION: Phase.VOTING,
    Phase.VOTING:     Phase.EXECUTION,
    Phase.EXECUTION:  None,
}


# ══════════════════════════════════════════════════════════════════════
#  MILESTONE
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Milestone:
    """An amount-bounded unit of proposal funding."""
    description: str
    amount: int
    completed: bool = False
    funded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "amount": self.amount,
            "completed": self.completed,
            "funded": self.funded,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        return cls(
            description=data["description"],
            amount=data["amount"],
            completed=data.get("completed", False),
            funded=data.get("funded", False),
        )


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    Funding proposal record.

    Fields:
        id:              Sequential identifier, starting at 1
        title:           Short title
        description:     Detailed description / rationale
        link:            External reference (forum thread, document)
        proposer:        Identity of the submitting member
        created_at:      Block height of creation
        funding_amount:  Total requested; equals the sum of milestone amounts
        state:           Lifecycle status
        phase:           Current phase
        phase_end:       Block height at which the current phase may be closed
        yes_votes:       Accumulated weight in favour
        no_votes:        Accumulated weight against
        executed_at:     Block height of execution, if executed
        milestones:      Ordered funding milestones
    """
    id: int
    title: str
    description: str
    link: str
    proposer: str
    created_at: int
    funding_amount: int
    state: ProposalState = ProposalState.DRAFT
    phase: Phase = Phase.SUBMISSION
    phase_end: int = 0
    yes_votes: int = 0
    no_votes: int = 0
    executed_at: Optional[int] = None
    milestones: List[Milestone] = field(default_factory=list)
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    # ── Properties ────────────────────────────────────────────────────

    @property
    def proposal_hash(self) -> str:
        """Deterministic content hash of the immutable proposal fields."""
        payload = (
            str(self.id).encode()
            + self.title.encode()
            + self.proposer.encode()
            + str(self.funding_amount).encode()
            + b"".join(
                m.description.encode() + str(m.amount).encode()
                for m in self.milestones
            )
        )
        return hashlib.blake2b(payload, digest_size=32).hexdigest()

    @property
    def total_votes(self) -> int:
        return self.yes_votes + self.no_votes

    @property
    def milestone_total(self) -> int:
        return sum(m.amount for m in self.milestones)

    @property
    def is_terminal(self) -> bool:
        return self.state in (
            ProposalState.REJECTED,
            ProposalState.EXECUTED,
            ProposalState.CANCELLED,
        )

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def phase_expired(self, height: int) -> bool:
        return height >= self.phase_end

    # ── Transitions ───────────────────────────────────────────────────

    def _record_transition(self, old: str, new: str, reason: str, height: int):
        self._history.append({
            "from": old,
            "to": new,
            "reason": reason,
            "height": height,
        })

    def transition_to(self, new_state: ProposalState, height: int, reason: str = ""):
        """
        Move to *new_state*.

        Raises InvalidProposalStateError on transitions outside the lifecycle.
        """
        allowed = _VALID_STATE_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise InvalidProposalStateError(
                f"Cannot transition from {self.state.name} -> {new_state.name}. "
                f"Allowed: {[s.name for s in allowed]}"
            )
        old = self.state
        self._record_transition(old.name, new_state.name, reason, height)
        self.state = new_state
        logger.info(f"Proposal #{self.id}: {old.name} -> {new_state.name} @{height} | {reason}")

    def advance_phase(self, height: int, phase_length: Optional[int] = None, reason: str = ""):
        """
        Move to the next phase. With *phase_length* the new deadline is
        ``height + phase_length``; otherwise the old deadline is kept.
        """
        nxt = _NEXT_PHASE[self.phase]
        if nxt is None:
            raise InvalidPhaseError(f"Proposal #{self.id} is already in the final phase")
        old = self.phase
        self._record_transition(old.name, nxt.name, reason, height)
        self.phase = nxt
        if phase_length is not None:
            self.phase_end = height + phase_length
        logger.info(
            f"Proposal #{self.id}: {old.name} -> {nxt.name} @{height} "
            f"(ends @{self.phase_end})"
        )

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "proposer": self.proposer,
            "createdAt": self.created_at,
            "fundingAmount": self.funding_amount,
            "state": self.state.name,
            "phase": self.phase.name,
            "phaseEndTime": self.phase_end,
            "yesVotes": self.yes_votes,
            "noVotes": self.no_votes,
            "executedAt": self.executed_at,
            "milestones": [m.to_dict() for m in self.milestones],
            "history": list(self._history),
            "proposalHash": self.proposal_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        return cls(
            id=data["id"],
            title=data["title"],
            description=data["description"],
            link=data.get("link", ""),
            proposer=data["proposer"],
            created_at=data["createdAt"],
            funding_amount=data["fundingAmount"],
            state=ProposalState[data.get("state", "DRAFT")],
            phase=Phase[data.get("phase", "SUBMISSION")],
            phase_end=data.get("phaseEndTime", 0),
            yes_votes=data.get("yesVotes", 0),
            no_votes=data.get("noVotes", 0),
            executed_at=data.get("executedAt"),
            milestones=[Milestone.from_dict(m) for m in data.get("milestones", [])],
            _history=list(data.get("history", [])),
        )

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} '{self.title}' "
            f"state={self.state.name} phase={self.phase.name}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  STORE
# ══════════════════════════════════════════════════════════════════════

_PREFIX = "proposal:"
_COUNTER_KEY = "proposal-count"


class ProposalStore:
    """Proposal records keyed by sequential id."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @property
    def count(self) -> int:
        data = self._store.get(_COUNTER_KEY)
        return 0 if data is None else data["count"]

    def get(self, proposal_id: int) -> Optional[Proposal]:
        data = self._store.get(f"{_PREFIX}{proposal_id}")
        return None if data is None else Proposal.from_dict(data)

    def require(self, proposal_id: int) -> Proposal:
        proposal = self.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal #{proposal_id} does not exist")
        return proposal

    def save(self, proposal: Proposal) -> None:
        self._store.put(f"{_PREFIX}{proposal.id}", proposal.to_dict())

    def create(
        self,
        proposer: str,
        title: str,
        description: str,
        link: str,
        funding_amount: int,
        milestones: Sequence[Milestone],
        height: int,
        submission_length: int,
    ) -> Proposal:
        """Allocate the next id and persist a fresh DRAFT / SUBMISSION proposal."""
        proposal_id = self.count + 1
        proposal = Proposal(
            id=proposal_id,
            title=title,
            description=description,
            link=link,
            proposer=proposer,
            created_at=height,
            funding_amount=funding_amount,
            phase_end=height + submission_length,
            milestones=[
                Milestone(description=m.description, amount=m.amount)
                for m in milestones
            ],
        )
        proposal._record_transition("INIT", ProposalState.DRAFT.name, "created", height)
        self.save(proposal)
        self._store.put(_COUNTER_KEY, {"count": proposal_id})
        logger.info(
            f"Proposal #{proposal_id} created by {proposer}: '{title}' "
            f"({funding_amount} requested, {len(proposal.milestones)} milestones) @{height}"
        )
        return proposal
