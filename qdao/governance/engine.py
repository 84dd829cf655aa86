"""
Governance Engine

Owns the governance state aggregate (members, proposals, votes, treasury)
and gates every mutation through the proposal phase/state rules.

Every public mutation:
  1. reads the records it needs from the store,
  2. checks its preconditions in a fixed order, raising the first failure,
  3. writes the minimal set of records back,
all inside a single store transaction so a failure leaves nothing behind.

Phase expiry is lazy: a stored deadline is compared against the caller's
block height when a transition is requested. Nothing runs in the background.
"""

from typing import Callable, List, Optional, Sequence

from ..config import GovernanceConfig
from ..context import CallContext
from ..exceptions import (
    DelegationNotAllowedError,
    InvalidAmountError,
    InvalidPhaseError,
    InvalidProposalStateError,
    MilestoneAlreadyFundedError,
    MilestoneNotFoundError,
    NotAuthorizedError,
    NotMemberError,
    VotingClosedError,
)
from ..logger import get_logger
from ..storage import KeyValueStore, MemoryStore
from .members import Member, MembershipLedger
from .proposals import Milestone, Phase, Proposal, ProposalState, ProposalStore
from .treasury import Treasury, require_amount
from .voting import (
    VoteLedger,
    VoteRecord,
    proposal_passes,
    quadratic_weight,
    quorum_reached,
)

logger = get_logger(__name__)

AuthorizationPolicy = Callable[[str, str], bool]

ACTION_UPDATE_EXPERT_STATUS = "update-expert-status"
ACTION_ADD_TO_TREASURY = "add-to-treasury"


def allow_all(caller: str, action: str) -> bool:
    """Default policy: administrative actions are open to everyone."""
    return True


def admin_only(*admins: str) -> AuthorizationPolicy:
    """Policy restricting administrative actions to the given identities."""
    allowed = frozenset(admins)

    def policy(caller: str, action: str) -> bool:
        return caller in allowed

    return policy


class GovernanceEngine:
    """
    Proposal lifecycle state machine with vote tallying and milestone funding.

    Args:
        config:     Phase lengths, thresholds and the milestone cap
        store:      Backing key-value store (a fresh MemoryStore by default)
        authorize:  Predicate ``(caller, action) -> bool`` consulted for
                    expert-status updates and treasury deposits
    """

    def __init__(
        self,
        config: Optional[GovernanceConfig] = None,
        store: Optional[KeyValueStore] = None,
        authorize: AuthorizationPolicy = allow_all,
    ):
        self.config = config or GovernanceConfig()
        self.config.validate()
        self._store = store if store is not None else MemoryStore()
        self._authorize = authorize

        self.members = MembershipLedger(self._store)
        self.proposals = ProposalStore(self._store)
        self.votes = VoteLedger(self._store)
        self.treasury = Treasury(self._store)

    def _require_authorized(self, ctx: CallContext, action: str) -> None:
        if not self._authorize(ctx.caller, action):
            raise NotAuthorizedError(f"{ctx.caller} may not perform {action}")

    # ── Membership ────────────────────────────────────────────────────

    def register(self, ctx: CallContext, token_amount: int, is_expert: bool = False) -> Member:
        with self._store.transaction():
            member = self.members.register(ctx.caller, token_amount, is_expert, ctx.height)
            self.treasury.record_issuance(token_amount)
            return member

    def delegate(self, ctx: CallContext, delegate: str) -> Member:
        with self._store.transaction():
            return self.members.delegate(ctx.caller, delegate)

    def remove_delegation(self, ctx: CallContext) -> Member:
        with self._store.transaction():
            return self.members.remove_delegation(ctx.caller)

    def update_expert_status(self, ctx: CallContext, member: str, is_expert: bool) -> Member:
        with self._store.transaction():
            self._require_authorized(ctx, ACTION_UPDATE_EXPERT_STATUS)
            return self.members.update_expert_status(member, is_expert)

    # ── Proposal lifecycle ────────────────────────────────────────────

    def create_proposal(
        self,
        ctx: CallContext,
        title: str,
        description: str,
        link: str,
        funding_amount: int,
        milestones: Sequence[Milestone],
    ) -> int:
        """Create a DRAFT proposal in the SUBMISSION phase and return its id."""
        with self._store.transaction():
            self.members.require_active(ctx.caller)
            milestones = list(milestones)
            if len(milestones) > self.config.proposals.max_milestones:
                raise InvalidAmountError(
                    f"At most {self.config.proposals.max_milestones} milestones allowed, "
                    f"got {len(milestones)}"
                )
            require_amount(funding_amount, "Funding amount", allow_zero=True)
            for m in milestones:
                require_amount(m.amount, "Milestone amount")
            total = sum(m.amount for m in milestones)
            if total != funding_amount:
                raise InvalidAmountError(
                    f"Milestones sum to {total}, funding amount is {funding_amount}"
                )
            proposal = self.proposals.create(
                proposer=ctx.caller,
                title=title,
                description=description,
                link=link,
                funding_amount=funding_amount,
                milestones=milestones,
                height=ctx.height,
                submission_length=self.config.phases.submission_length,
            )
            return proposal.id

    def start_discussion(self, ctx: CallContext, proposal_id: int) -> Proposal:
        """SUBMISSION -> DISCUSSION once the submission window has elapsed."""
        with self._store.transaction():
            proposal = self.proposals.require(proposal_id)
            if ctx.caller != proposal.proposer:
                raise NotAuthorizedError(f"Only the proposer may open discussion on #{proposal_id}")
            if proposal.state != ProposalState.DRAFT:
                raise InvalidProposalStateError(
                    f"Proposal #{proposal_id} is {proposal.state.name}, expected DRAFT"
                )
            if proposal.phase != Phase.SUBMISSION or not proposal.phase_expired(ctx.height):
                raise InvalidPhaseError(
                    f"Proposal #{proposal_id} is in {proposal.phase.name} until @{proposal.phase_end}"
                )
            proposal.advance_phase(ctx.height, self.config.phases.discussion_length, "Discussion opened")
            self.proposals.save(proposal)
            return proposal

    def start_voting(self, ctx: CallContext, proposal_id: int) -> Proposal:
        """DISCUSSION -> VOTING and DRAFT -> ACTIVE, together."""
        with self._store.transaction():
            proposal = self.proposals.require(proposal_id)
            if ctx.caller != proposal.proposer and not self.members.is_active(ctx.caller):
                raise NotAuthorizedError(f"{ctx.caller} may not open voting on #{proposal_id}")
            if proposal.state != ProposalState.DRAFT:
                raise InvalidProposalStateError(
                    f"Proposal #{proposal_id} is {proposal.state.name}, expected DRAFT"
                )
            if proposal.phase != Phase.DISCUSSION or not proposal.phase_expired(ctx.height):
                raise InvalidPhaseError(
                    f"Proposal #{proposal_id} is in {proposal.phase.name} until @{proposal.phase_end}"
                )
            proposal.transition_to(ProposalState.ACTIVE, ctx.height, "Voting opened")
            proposal.advance_phase(ctx.height, self.config.phases.voting_length, "Voting opened")
            self.proposals.save(proposal)
            return proposal

    def vote(self, ctx: CallContext, proposal_id: int, vote_for: bool) -> VoteRecord:
        """
        Cast a weighted ballot.

        The double-vote guard keys on the literal caller. A delegator and its
        delegate are therefore tracked independently. Weight always comes from
        the caller's own balance.
        """
        with self._store.transaction():
            proposal = self.proposals.require(proposal_id)
            member = self.members.get(ctx.caller)
            if member is None:
                raise NotMemberError(f"{ctx.caller} is not a member")
            if proposal.state != ProposalState.ACTIVE:
                raise InvalidProposalStateError(
                    f"Proposal #{proposal_id} is {proposal.state.name}, expected ACTIVE"
                )
            if proposal.phase != Phase.VOTING or ctx.height > proposal.phase_end:
                raise VotingClosedError(f"Voting on #{proposal_id} is closed")

            effective = member.delegated_to or ctx.caller
            if effective != ctx.caller and not self.members.is_active(effective):
                raise DelegationNotAllowedError(
                    f"Delegate {effective} of {ctx.caller} is not an active member"
                )

            weight = quadratic_weight(member.token_balance)
            record = self.votes.record(proposal_id, ctx.caller, vote_for, weight, ctx.height)
            if vote_for:
                proposal.yes_votes += weight
            else:
                proposal.no_votes += weight
            self.proposals.save(proposal)
            logger.info(
                f"Vote: {ctx.caller} -> {'YES' if vote_for else 'NO'} on Proposal #{proposal_id} "
                f"(weight={weight}, effective voter={effective}) @{ctx.height}"
            )
            return record

    def finalize(self, ctx: CallContext, proposal_id: int) -> bool:
        """Close voting; returns whether the proposal passed."""
        with self._store.transaction():
            proposal = self.proposals.require(proposal_id)
            if proposal.state != ProposalState.ACTIVE:
                raise InvalidProposalStateError(
                    f"Proposal #{proposal_id} is {proposal.state.name}, expected ACTIVE"
                )
            if proposal.phase != Phase.VOTING or not proposal.phase_expired(ctx.height):
                raise InvalidPhaseError(
                    f"Voting on #{proposal_id} runs until @{proposal.phase_end}"
                )

            total_tokens = self.treasury.total_tokens_issued
            thresholds = self.config.thresholds
            quorum = quorum_reached(
                proposal.yes_votes, proposal.no_votes, total_tokens, thresholds.quorum_percent
            )
            passed = proposal_passes(
                proposal.yes_votes,
                proposal.no_votes,
                total_tokens,
                thresholds.quorum_percent,
                thresholds.acceptance_percent,
            )

            if passed:
                proposal.transition_to(ProposalState.PASSED, ctx.height, "Quorum and acceptance met")
                proposal.advance_phase(ctx.height, reason="Execution opened")
            else:
                proposal.transition_to(ProposalState.REJECTED, ctx.height, "Vote did not pass")
                if not quorum:
                    logger.warning(
                        f"Proposal #{proposal_id}: quorum not reached "
                        f"({proposal.total_votes}/{total_tokens} tokens issued)"
                    )
            self.proposals.save(proposal)
            return passed

    def cancel(self, ctx: CallContext, proposal_id: int) -> Proposal:
        with self._store.transaction():
            proposal = self.proposals.require(proposal_id)
            if ctx.caller != proposal.proposer:
                raise NotAuthorizedError(f"Only the proposer may cancel #{proposal_id}")
            if proposal.is_terminal:
                if proposal.state == ProposalState.CANCELLED:
                    return proposal
                raise InvalidProposalStateError(
                    f"Cannot cancel proposal #{proposal_id} (state={proposal.state.name})"
                )
            proposal.transition_to(ProposalState.CANCELLED, ctx.height, "Cancelled by proposer")
            self.proposals.save(proposal)
            return proposal

    def execute(self, ctx: CallContext, proposal_id: int) -> Proposal:
        """PASSED -> EXECUTED, stamping the execution height."""
        with self._store.transaction():
            proposal = self.proposals.require(proposal_id)
            if ctx.caller != proposal.proposer:
                raise NotAuthorizedError(f"Only the proposer may execute #{proposal_id}")
            if proposal.state != ProposalState.PASSED:
                raise InvalidProposalStateError(
                    f"Proposal #{proposal_id} is {proposal.state.name}, expected PASSED"
                )
            if proposal.phase != Phase.EXECUTION:
                raise InvalidPhaseError(f"Proposal #{proposal_id} is not in EXECUTION")
            proposal.executed_at = ctx.height
            proposal.transition_to(ProposalState.EXECUTED, ctx.height, "Executed")
            self.proposals.save(proposal)
            return proposal

    # ── Treasury / milestones ─────────────────────────────────────────

    def add_to_treasury(self, ctx: CallContext, amount: int) -> int:
        with self._store.transaction():
            self._require_authorized(ctx, ACTION_ADD_TO_TREASURY)
            return self.treasury.deposit(amount)

    def fund_milestone(self, ctx: CallContext, proposal_id: int, milestone_index: int) -> Milestone:
        """
        Disburse one milestone. The funded flag is written in the same
        transaction as the debit, so a milestone can be paid only once.
        """
        with self._store.transaction():
            proposal = self.proposals.require(proposal_id)
            milestone = self._milestone(proposal, milestone_index)
            if milestone.funded:
                raise MilestoneAlreadyFundedError(
                    f"Milestone {milestone_index} of #{proposal_id} is already funded"
                )
            self.treasury.withdraw(milestone.amount)
            milestone.funded = True
            self.proposals.save(proposal)
            logger.info(
                f"Proposal #{proposal_id}: milestone {milestone_index} funded "
                f"({milestone.amount}) @{ctx.height}"
            )
            return milestone

    def complete_milestone(self, ctx: CallContext, proposal_id: int, milestone_index: int) -> Milestone:
        with self._store.transaction():
            proposal = self.proposals.require(proposal_id)
            if ctx.caller != proposal.proposer:
                raise NotAuthorizedError(f"Only the proposer may complete milestones of #{proposal_id}")
            milestone = self._milestone(proposal, milestone_index)
            if milestone.completed:
                return milestone
            milestone.completed = True
            self.proposals.save(proposal)
            logger.info(f"Proposal #{proposal_id}: milestone {milestone_index} completed @{ctx.height}")
            return milestone

    @staticmethod
    def _milestone(proposal: Proposal, index: int) -> Milestone:
        if not 0 <= index < len(proposal.milestones):
            raise MilestoneNotFoundError(
                f"Proposal #{proposal.id} has no milestone {index}"
            )
        return proposal.milestones[index]

    # ── Queries (never mutate) ────────────────────────────────────────

    def get_member(self, identity: str) -> Optional[Member]:
        return self.members.get(identity)

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        return self.proposals.get(proposal_id)

    def get_milestone(self, proposal_id: int, index: int) -> Milestone:
        return self._milestone(self.proposals.require(proposal_id), index)

    def get_member_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self.votes.get(proposal_id, voter)

    def get_votes(self, proposal_id: int) -> List[VoteRecord]:
        return list(self.votes.votes_for_proposal(proposal_id))

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return self.votes.has_voted(proposal_id, voter)

    def get_effective_voter(self, identity: str) -> str:
        return self.members.effective_voter(identity)

    def get_voting_weight(self, identity: str) -> int:
        member = self.members.require_active(identity)
        return quadratic_weight(member.token_balance)

    def get_treasury_balance(self) -> int:
        return self.treasury.balance

    def get_total_tokens(self) -> int:
        return self.treasury.total_tokens_issued

    def get_proposal_count(self) -> int:
        return self.proposals.count

    def has_reached_quorum(self, proposal_id: int) -> bool:
        proposal = self.proposals.require(proposal_id)
        return quorum_reached(
            proposal.yes_votes,
            proposal.no_votes,
            self.treasury.total_tokens_issued,
            self.config.thresholds.quorum_percent,
        )

    def has_proposal_passed(self, proposal_id: int) -> bool:
        proposal = self.proposals.require(proposal_id)
        return proposal_passes(
            proposal.yes_votes,
            proposal.no_votes,
            self.treasury.total_tokens_issued,
            self.config.thresholds.quorum_percent,
            self.config.thresholds.acceptance_percent,
        )

    def __repr__(self) -> str:
        return (
            f"<GovernanceEngine proposals={self.proposals.count} "
            f"treasury={self.treasury.balance} issued={self.treasury.total_tokens_issued}>"
        )
