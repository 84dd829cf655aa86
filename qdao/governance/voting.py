"""
Vote Ledger and Tally Rules

Implements:
  - Vote weight: 1 + floor(token_balance / 10), a linear stand-in for a
    square root that is kept exactly for ledger compatibility
  - One vote record per (proposal, voter); the record is the double-vote guard
  - Quorum: total weight >= total_tokens_issued * quorum% / 100 (truncating)
  - Acceptance: yes * 100 / total >= acceptance%, with zero votes counting as 0%
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from ..constants import QUADRATIC_WEIGHT_BASE, QUADRATIC_WEIGHT_DIVISOR
from ..exceptions import AlreadyVotedError
from ..logger import get_logger
from ..storage import KeyValueStore

logger = get_logger(__name__)

_PREFIX = "vote:"


def quadratic_weight(token_balance: int) -> int:
    """Vote weight for a member holding *token_balance* tokens."""
    return QUADRATIC_WEIGHT_BASE + token_balance // QUADRATIC_WEIGHT_DIVISOR


def quorum_reached(yes_votes: int, no_votes: int, total_tokens_issued: int, quorum_percent: int) -> bool:
    required = total_tokens_issued * quorum_percent // 100
    return yes_votes + no_votes >= required


def yes_percentage(yes_votes: int, no_votes: int) -> int:
    total = yes_votes + no_votes
    if total == 0:
        return 0
    return yes_votes * 100 // total


def proposal_passes(
    yes_votes: int,
    no_votes: int,
    total_tokens_issued: int,
    quorum_percent: int,
    acceptance_percent: int,
) -> bool:
    """Quorum met AND yes share at or above the acceptance threshold."""
    if yes_votes + no_votes == 0:
        return False
    return (
        quorum_reached(yes_votes, no_votes, total_tokens_issued, quorum_percent)
        and yes_percentage(yes_votes, no_votes) >= acceptance_percent
    )


@dataclass(frozen=True)
class VoteRecord:
    """A ballot cast by a voter on a proposal."""
    proposal_id: int
    voter: str
    vote_for: bool
    weight: int
    voted_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "voteFor": self.vote_for,
            "weight": self.weight,
            "votedAt": self.voted_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoteRecord":
        return cls(
            proposal_id=data["proposalId"],
            voter=data["voter"],
            vote_for=data["voteFor"],
            weight=data["weight"],
            voted_at=data["votedAt"],
        )


class VoteLedger:
    """Permanent vote records keyed by (proposal id, voter)."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @staticmethod
    def _key(proposal_id: int, voter: str) -> str:
        return f"{_PREFIX}{proposal_id}:{voter}"

    def get(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        data = self._store.get(self._key(proposal_id, voter))
        return None if data is None else VoteRecord.from_dict(data)

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return self._store.exists(self._key(proposal_id, voter))

    def record(self, proposal_id: int, voter: str, vote_for: bool, weight: int, height: int) -> VoteRecord:
        if self.has_voted(proposal_id, voter):
            raise AlreadyVotedError(f"{voter} has already voted on proposal #{proposal_id}")
        record = VoteRecord(
            proposal_id=proposal_id,
            voter=voter,
            vote_for=vote_for,
            weight=weight,
            voted_at=height,
        )
        self._store.put(self._key(proposal_id, voter), record.to_dict())
        return record

    def votes_for_proposal(self, proposal_id: int) -> Iterator[VoteRecord]:
        for _, data in self._store.items(prefix=f"{_PREFIX}{proposal_id}:"):
            yield VoteRecord.from_dict(data)
