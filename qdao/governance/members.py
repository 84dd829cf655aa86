"""
Membership Ledger

Maps an identity to its token balance, active flag, expert flag and an
optional one-hop delegation target. Members are created once at registration
and never removed.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..exceptions import (
    AlreadyMemberError,
    DelegationNotAllowedError,
    NotMemberError,
)
from ..logger import get_logger
from ..storage import KeyValueStore
from .treasury import require_amount

logger = get_logger(__name__)

_PREFIX = "member:"


@dataclass
class Member:
    """
    A registered governance member.

    Fields:
        identity:       Ledger identity of the member
        token_balance:  Membership tokens held (drives vote weight)
        is_active:      Registration flag
        joined_at:      Block height of registration
        delegated_to:   Identity this member delegates to, if any
        is_expert:      Expert reviewer flag
    """
    identity: str
    token_balance: int
    is_active: bool = True
    joined_at: int = 0
    delegated_to: Optional[str] = None
    is_expert: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "tokenBalance": self.token_balance,
            "isActive": self.is_active,
            "joinedAt": self.joined_at,
            "delegatedTo": self.delegated_to,
            "isExpert": self.is_expert,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        return cls(
            identity=data["identity"],
            token_balance=data["tokenBalance"],
            is_active=data.get("isActive", True),
            joined_at=data.get("joinedAt", 0),
            delegated_to=data.get("delegatedTo"),
            is_expert=data.get("isExpert", False),
        )


class MembershipLedger:
    """Member records keyed by identity."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    # ── Reads ─────────────────────────────────────────────────────────

    def get(self, identity: str) -> Optional[Member]:
        data = self._store.get(_PREFIX + identity)
        return None if data is None else Member.from_dict(data)

    def is_active(self, identity: str) -> bool:
        member = self.get(identity)
        return member is not None and member.is_active

    def require_active(self, identity: str) -> Member:
        member = self.get(identity)
        if member is None or not member.is_active:
            raise NotMemberError(f"{identity} is not an active member")
        return member

    def effective_voter(self, identity: str) -> str:
        """Resolve exactly one hop of delegation; chains are not followed."""
        member = self.get(identity)
        if member is not None and member.delegated_to:
            return member.delegated_to
        return identity

    def _save(self, member: Member) -> None:
        self._store.put(_PREFIX + member.identity, member.to_dict())

    # ── Mutations ─────────────────────────────────────────────────────

    def register(self, identity: str, token_amount: int, is_expert: bool, height: int) -> Member:
        if self.is_active(identity):
            raise AlreadyMemberError(f"{identity} is already a member")
        require_amount(token_amount, "Token amount")
        member = Member(
            identity=identity,
            token_balance=token_amount,
            is_active=True,
            joined_at=height,
            delegated_to=None,
            is_expert=is_expert,
        )
        self._save(member)
        logger.info(f"Member registered: {identity} ({token_amount} tokens, expert={is_expert}) @{height}")
        return member

    def delegate(self, identity: str, delegate: str) -> Member:
        member = self.require_active(identity)
        self.require_active(delegate)
        if delegate == identity:
            raise DelegationNotAllowedError(f"{identity} cannot delegate to itself")
        member.delegated_to = delegate
        self._save(member)
        logger.info(f"Delegation: {identity} -> {delegate}")
        return member

    def remove_delegation(self, identity: str) -> Member:
        member = self.require_active(identity)
        if member.delegated_to is None:
            return member
        previous = member.delegated_to
        member.delegated_to = None
        self._save(member)
        logger.info(f"Delegation removed: {identity} -/-> {previous}")
        return member

    def update_expert_status(self, identity: str, is_expert: bool) -> Member:
        member = self.get(identity)
        if member is None:
            raise NotMemberError(f"{identity} is not a member")
        member.is_expert = is_expert
        self._save(member)
        logger.info(f"Expert status: {identity} expert={is_expert}")
        return member

    def __repr__(self) -> str:
        return "<MembershipLedger>"
