"""
DAO Contract Interface

The externally visible surface of the governance ledger. Each call picks up
the caller identity and the current block height from the environment and
returns a `Response` instead of raising: ``ok`` with a value, or ``err`` with
one `ErrorCode`.

Usage:
    >>> contract = DaoContract()
    >>> alice = contract.as_caller("alice")
    >>> alice.register(100, False)
    Response(ok=True, value=True, error=None, message='')
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Union

from .context import BlockClock, CallContext
from .exceptions import ErrorCode, GovernanceError, NotAuthorizedError
from .governance.engine import GovernanceEngine
from .governance.proposals import Milestone
from .logger import get_logger

logger = get_logger(__name__)

MilestoneInput = Union[Milestone, Mapping[str, Any], Tuple[str, int]]


@dataclass(frozen=True)
class Response:
    """Result of a contract call."""
    ok: bool
    value: Any = None
    error: Optional[ErrorCode] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = True) -> "Response":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorCode, message: str = "") -> "Response":
        return cls(ok=False, error=error, message=message)

    def unwrap(self) -> Any:
        """Return the value of an ok response; raise ValueError on err."""
        if not self.ok:
            raise ValueError(f"called unwrap() on err response: {self.error} {self.message}")
        return self.value


def _to_milestone(item: MilestoneInput) -> Milestone:
    if isinstance(item, Milestone):
        return Milestone(description=item.description, amount=item.amount)
    if isinstance(item, Mapping):
        return Milestone(description=item["description"], amount=item["amount"])
    description, amount = item
    return Milestone(description=description, amount=amount)


class DaoContract:
    """
    Contract facade over a `GovernanceEngine`.

    Args:
        engine: Governance engine to drive (a default-configured one if omitted)
        clock:  Ledger block height source (starts at height 0 if omitted)
    """

    def __init__(self, engine: Optional[GovernanceEngine] = None, clock: Optional[BlockClock] = None):
        self.engine = engine or GovernanceEngine()
        self.clock = clock or BlockClock()

    def as_caller(self, identity: str) -> "ContractCaller":
        """Bind calls to *identity* as the transaction sender."""
        return ContractCaller(self, identity)

    def _invoke(self, name: str, fn: Callable[[], Any]) -> Response:
        try:
            value = fn()
        except GovernanceError as e:
            logger.debug(f"{name} rejected: {e.code} {e.message}")
            return Response.failure(e.code, e.message)
        return Response.success(value)

    # ── Read-only queries ─────────────────────────────────────────────

    def has_reached_quorum(self, proposal_id: int) -> Response:
        return self._invoke("has-reached-quorum", lambda: self.engine.has_reached_quorum(proposal_id))

    def has_proposal_passed(self, proposal_id: int) -> Response:
        return self._invoke("has-proposal-passed", lambda: self.engine.has_proposal_passed(proposal_id))

    def get_member(self, identity: str) -> Response:
        return Response.success(self.engine.get_member(identity))

    def get_proposal(self, proposal_id: int) -> Response:
        return Response.success(self.engine.get_proposal(proposal_id))

    def get_milestone(self, proposal_id: int, index: int) -> Response:
        return self._invoke("get-milestone", lambda: self.engine.get_milestone(proposal_id, index))

    def get_member_vote(self, proposal_id: int, voter: str) -> Response:
        return Response.success(self.engine.get_member_vote(proposal_id, voter))

    def has_voted(self, proposal_id: int, voter: str) -> Response:
        return Response.success(self.engine.has_voted(proposal_id, voter))

    def get_effective_voter(self, identity: str) -> Response:
        return Response.success(self.engine.get_effective_voter(identity))

    def get_voting_weight(self, identity: str) -> Response:
        return self._invoke("get-voting-weight", lambda: self.engine.get_voting_weight(identity))

    def get_treasury_balance(self) -> Response:
        return Response.success(self.engine.get_treasury_balance())

    def get_total_tokens(self) -> Response:
        return Response.success(self.engine.get_total_tokens())

    def get_proposal_count(self) -> Response:
        return Response.success(self.engine.get_proposal_count())


class ContractCaller:
    """Mutating contract calls made by one identity at the clock's current height."""

    def __init__(self, contract: DaoContract, identity: str):
        self._contract = contract
        self.identity = identity

    @property
    def _ctx(self) -> CallContext:
        return self._contract.clock.context_for(self.identity)

    @property
    def _engine(self) -> GovernanceEngine:
        return self._contract.engine

    def _invoke(self, name: str, fn: Callable[[CallContext], Any], returns: bool = False) -> Response:
        """Run *fn*; ok carries its result when *returns* is set, else True."""
        def call():
            if not self.identity:
                raise NotAuthorizedError("caller identity is required")
            result = fn(self._ctx)
            return result if returns else True

        return self._contract._invoke(name, call)

    # ── Membership ────────────────────────────────────────────────────

    def register(self, token_amount: int, is_expert: bool = False) -> Response:
        return self._invoke(
            "register",
            lambda ctx: self._engine.register(ctx, token_amount, is_expert),
        )

    def delegate(self, delegate: str) -> Response:
        return self._invoke("delegate", lambda ctx: self._engine.delegate(ctx, delegate))

    def remove_delegation(self) -> Response:
        return self._invoke("remove-delegation", lambda ctx: self._engine.remove_delegation(ctx))

    def update_expert_status(self, member: str, is_expert: bool) -> Response:
        return self._invoke(
            "update-expert-status",
            lambda ctx: self._engine.update_expert_status(ctx, member, is_expert),
        )

    # ── Proposals ─────────────────────────────────────────────────────

    def create_proposal(
        self,
        title: str,
        description: str,
        link: str,
        funding_amount: int,
        milestones: Iterable[MilestoneInput],
    ) -> Response:
        items: List[Milestone] = [_to_milestone(m) for m in milestones]
        return self._invoke(
            "create-proposal",
            lambda ctx: self._engine.create_proposal(ctx, title, description, link, funding_amount, items),
            returns=True,
        )

    def start_discussion(self, proposal_id: int) -> Response:
        return self._invoke(
            "start-discussion",
            lambda ctx: self._engine.start_discussion(ctx, proposal_id),
        )

    def start_voting(self, proposal_id: int) -> Response:
        return self._invoke(
            "start-voting",
            lambda ctx: self._engine.start_voting(ctx, proposal_id),
        )

    def vote_on_proposal(self, proposal_id: int, vote_for: bool) -> Response:
        return self._invoke(
            "vote-on-proposal",
            lambda ctx: self._engine.vote(ctx, proposal_id, vote_for),
        )

    def finalize_proposal(self, proposal_id: int) -> Response:
        return self._invoke("finalize-proposal", lambda ctx: self._engine.finalize(ctx, proposal_id), returns=True)

    def cancel_proposal(self, proposal_id: int) -> Response:
        return self._invoke(
            "cancel-proposal",
            lambda ctx: self._engine.cancel(ctx, proposal_id),
        )

    def execute_proposal(self, proposal_id: int) -> Response:
        return self._invoke(
            "execute-proposal",
            lambda ctx: self._engine.execute(ctx, proposal_id),
        )

    # ── Treasury ──────────────────────────────────────────────────────

    def add_to_treasury(self, amount: int) -> Response:
        return self._invoke(
            "add-to-treasury",
            lambda ctx: self._engine.add_to_treasury(ctx, amount),
        )

    def fund_milestone(self, proposal_id: int, milestone_index: int) -> Response:
        return self._invoke(
            "fund-milestone",
            lambda ctx: self._engine.fund_milestone(ctx, proposal_id, milestone_index),
        )

    def complete_milestone(self, proposal_id: int, milestone_index: int) -> Response:
        return self._invoke(
            "complete-milestone",
            lambda ctx: self._engine.complete_milestone(ctx, proposal_id, milestone_index),
        )

    def __repr__(self) -> str:
        return f"<ContractCaller {self.identity}>"
