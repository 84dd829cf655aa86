"""
Contract Interface Test Suite

Drives the governance ledger through `DaoContract` the way an external caller
would: implicit sender and block height, result codes instead of exceptions.
"""

import os
import sys

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from qdao.config import GovernanceConfig, PhaseConfig, ProposalConfig, ThresholdConfig
from qdao.context import BlockClock
from qdao.contract import DaoContract, Response
from qdao.exceptions import ErrorCode
from qdao.governance import GovernanceEngine, Milestone, Phase, ProposalState


ALICE = "SP" + "A1" * 19
BOB = "SP" + "B2" * 19
CAROL = "SP" + "C3" * 19
MALLORY = "SP" + "EE" * 19

MILESTONES = [
    {"description": "Audit", "amount": 400},
    ("Launch", 600),
]


@pytest.fixture
def contract():
    config = GovernanceConfig(
        phases=PhaseConfig(submission_length=5, discussion_length=5, voting_length=10),
        thresholds=ThresholdConfig(quorum_percent=10, acceptance_percent=60),
        proposals=ProposalConfig(max_milestones=10),
    )
    c = DaoContract(engine=GovernanceEngine(config=config), clock=BlockClock(100))
    c.as_caller(ALICE).register(500, False)
    c.as_caller(BOB).register(300, True)
    c.as_caller(CAROL).register(200, False)
    return c


def create(contract, who=ALICE, funding=1000, milestones=MILESTONES) -> Response:
    return contract.as_caller(who).create_proposal(
        "Node Grant", "Run three validator nodes", "ipfs://grant", funding, milestones,
    )


def to_voting(contract, pid):
    alice = contract.as_caller(ALICE)
    contract.clock.advance(5)
    assert alice.start_discussion(pid).ok
    contract.clock.advance(5)
    assert alice.start_voting(pid).ok


# ══════════════════════════════════════════════════════════════════════
#  RESPONSE
# ══════════════════════════════════════════════════════════════════════


class TestResponse:

    def test_success(self):
        r = Response.success(5)
        assert r.ok
        assert r.unwrap() == 5
        assert r.error is None

    def test_failure_unwrap_raises(self):
        r = Response.failure(ErrorCode.NOT_MEMBER, "nope")
        assert not r.ok
        with pytest.raises(ValueError, match="NOT_MEMBER"):
            r.unwrap()

    def test_error_codes_are_stable(self):
        assert ErrorCode.NOT_AUTHORIZED == 100
        assert ErrorCode.TREASURY_INSUFFICIENT_FUNDS == 114
        assert str(ErrorCode.ALREADY_VOTED) == "ALREADY_VOTED(106)"
        assert len(ErrorCode) == 15


# ══════════════════════════════════════════════════════════════════════
#  MEMBERSHIP
# ══════════════════════════════════════════════════════════════════════


class TestMembershipCalls:

    def test_register_ok(self, contract):
        member = contract.get_member(ALICE).unwrap()
        assert member.token_balance == 500
        assert member.joined_at == 100
        assert contract.get_total_tokens().unwrap() == 1000

    def test_register_twice_err(self, contract):
        r = contract.as_caller(ALICE).register(10, False)
        assert r.error == ErrorCode.ALREADY_MEMBER
        assert contract.get_total_tokens().unwrap() == 1000

    def test_register_zero_err(self, contract):
        r = contract.as_caller(MALLORY).register(0)
        assert r.error == ErrorCode.INVALID_AMOUNT
        assert contract.get_member(MALLORY).unwrap() is None

    @pytest.mark.parametrize("amount", [10.5, True])
    def test_register_non_integer_err(self, contract, amount):
        r = contract.as_caller(MALLORY).register(amount, False)
        assert r.error == ErrorCode.INVALID_AMOUNT
        assert contract.get_member(MALLORY).unwrap() is None
        assert contract.get_total_tokens().unwrap() == 1000

    def test_empty_identity_err(self, contract):
        r = contract.as_caller("").register(10, False)
        assert r.error == ErrorCode.NOT_AUTHORIZED
        assert contract.get_total_tokens().unwrap() == 1000

    def test_delegate_calls(self, contract):
        alice = contract.as_caller(ALICE)
        assert alice.delegate(ALICE).error == ErrorCode.DELEGATION_NOT_ALLOWED
        assert alice.delegate(MALLORY).error == ErrorCode.NOT_MEMBER
        assert alice.delegate(BOB).ok
        assert contract.get_effective_voter(ALICE).unwrap() == BOB
        assert alice.remove_delegation().ok
        assert contract.get_effective_voter(ALICE).unwrap() == ALICE
        assert contract.as_caller(MALLORY).remove_delegation().error == ErrorCode.NOT_MEMBER

    def test_update_expert_status(self, contract):
        assert contract.as_caller(MALLORY).update_expert_status(ALICE, True).ok
        assert contract.get_member(ALICE).unwrap().is_expert
        r = contract.as_caller(ALICE).update_expert_status(MALLORY, True)
        assert r.error == ErrorCode.NOT_MEMBER

    def test_voting_weight(self, contract):
        assert contract.get_voting_weight(BOB).unwrap() == 31
        assert contract.get_voting_weight(MALLORY).error == ErrorCode.NOT_MEMBER


# ══════════════════════════════════════════════════════════════════════
#  LIFECYCLE
# ══════════════════════════════════════════════════════════════════════


class TestLifecycleCalls:

    def test_create_returns_id(self, contract):
        assert create(contract).unwrap() == 1
        assert create(contract, who=BOB).unwrap() == 2
        assert contract.get_proposal_count().unwrap() == 2

    def test_create_accepts_milestone_objects(self, contract):
        pid = create(contract, funding=10, milestones=[Milestone("only", 10)]).unwrap()
        assert contract.get_milestone(pid, 0).unwrap().description == "only"

    def test_create_errors(self, contract):
        assert create(contract, who=MALLORY).error == ErrorCode.NOT_MEMBER
        assert create(contract, funding=999).error == ErrorCode.INVALID_AMOUNT
        eleven = [("m", 1)] * 11
        assert create(contract, funding=11, milestones=eleven).error == ErrorCode.INVALID_AMOUNT
        assert contract.get_proposal_count().unwrap() == 0

    def test_out_of_order_transitions(self, contract):
        pid = create(contract).unwrap()
        alice = contract.as_caller(ALICE)
        assert alice.start_discussion(pid).error == ErrorCode.INVALID_PHASE
        assert alice.start_voting(pid).error == ErrorCode.INVALID_PHASE
        assert alice.finalize_proposal(pid).error == ErrorCode.INVALID_PROPOSAL_STATE
        assert alice.vote_on_proposal(pid, True).error == ErrorCode.INVALID_PROPOSAL_STATE
        p = contract.get_proposal(pid).unwrap()
        assert (p.state, p.phase) == (ProposalState.DRAFT, Phase.SUBMISSION)

    def test_unknown_proposal(self, contract):
        alice = contract.as_caller(ALICE)
        for r in (
            alice.start_discussion(9),
            alice.start_voting(9),
            alice.vote_on_proposal(9, True),
            alice.finalize_proposal(9),
            alice.cancel_proposal(9),
            alice.fund_milestone(9, 0),
            contract.has_reached_quorum(9),
            contract.has_proposal_passed(9),
        ):
            assert r.error == ErrorCode.PROPOSAL_NOT_FOUND
        assert contract.get_proposal(9).unwrap() is None

    def test_full_passing_flow(self, contract):
        pid = create(contract).unwrap()
        to_voting(contract, pid)

        assert contract.as_caller(ALICE).vote_on_proposal(pid, True).ok
        assert contract.as_caller(BOB).vote_on_proposal(pid, True).ok
        assert contract.as_caller(CAROL).vote_on_proposal(pid, False).ok
        r = contract.as_caller(CAROL).vote_on_proposal(pid, True)
        assert r.error == ErrorCode.ALREADY_VOTED
        assert contract.has_voted(pid, CAROL).unwrap()

        vote = contract.get_member_vote(pid, BOB).unwrap()
        assert vote.weight == 31
        assert vote.vote_for

        # Voting window still open
        assert contract.as_caller(ALICE).finalize_proposal(pid).error == ErrorCode.INVALID_PHASE

        contract.clock.advance(10)
        # 51 + 31 yes, 21 no; quorum 103 >= 100; yes% = 8200 // 103 = 79
        assert contract.has_reached_quorum(pid).unwrap()
        assert contract.as_caller(CAROL).finalize_proposal(pid).unwrap() is True

        p = contract.get_proposal(pid).unwrap()
        assert p.state == ProposalState.PASSED
        assert p.phase == Phase.EXECUTION
        assert (p.yes_votes, p.no_votes) == (82, 21)

        assert contract.as_caller(BOB).execute_proposal(pid).error == ErrorCode.NOT_AUTHORIZED
        assert contract.as_caller(ALICE).execute_proposal(pid).ok
        p = contract.get_proposal(pid).unwrap()
        assert p.state == ProposalState.EXECUTED
        assert p.executed_at == contract.clock.height

    def test_vote_after_window_closed(self, contract):
        pid = create(contract).unwrap()
        to_voting(contract, pid)
        contract.clock.advance(11)
        r = contract.as_caller(BOB).vote_on_proposal(pid, True)
        assert r.error == ErrorCode.VOTING_CLOSED

    def test_rejected_flow(self, contract):
        pid = create(contract).unwrap()
        to_voting(contract, pid)
        contract.as_caller(CAROL).vote_on_proposal(pid, False)
        contract.clock.advance(10)
        # 21 < 1000 * 10 // 100
        assert not contract.has_reached_quorum(pid).unwrap()
        assert contract.as_caller(ALICE).finalize_proposal(pid).unwrap() is False
        assert contract.as_caller(ALICE).cancel_proposal(pid).error == ErrorCode.INVALID_PROPOSAL_STATE

    def test_cancel(self, contract):
        pid = create(contract).unwrap()
        assert contract.as_caller(BOB).cancel_proposal(pid).error == ErrorCode.NOT_AUTHORIZED
        assert contract.as_caller(ALICE).cancel_proposal(pid).ok
        assert contract.get_proposal(pid).unwrap().state == ProposalState.CANCELLED


# ══════════════════════════════════════════════════════════════════════
#  TREASURY
# ══════════════════════════════════════════════════════════════════════


class TestTreasuryCalls:

    def test_treasury_never_negative(self, contract):
        pid = create(contract).unwrap()
        caller = contract.as_caller(MALLORY)
        assert caller.add_to_treasury(0).error == ErrorCode.INVALID_AMOUNT
        assert caller.add_to_treasury(500).ok

        assert caller.fund_milestone(pid, 1).error == ErrorCode.TREASURY_INSUFFICIENT_FUNDS
        assert contract.get_treasury_balance().unwrap() == 500

        assert caller.fund_milestone(pid, 0).ok
        assert contract.get_treasury_balance().unwrap() == 100
        assert caller.fund_milestone(pid, 0).error == ErrorCode.MILESTONE_ALREADY_FUNDED
        assert caller.fund_milestone(pid, 2).error == ErrorCode.MILESTONE_NOT_FOUND
        assert contract.get_treasury_balance().unwrap() == 100

    def test_fractional_deposit_err(self, contract):
        r = contract.as_caller(MALLORY).add_to_treasury(0.25)
        assert r.error == ErrorCode.INVALID_AMOUNT
        assert contract.get_treasury_balance().unwrap() == 0

    def test_complete_milestone(self, contract):
        pid = create(contract).unwrap()
        assert contract.as_caller(BOB).complete_milestone(pid, 0).error == ErrorCode.NOT_AUTHORIZED
        assert contract.as_caller(ALICE).complete_milestone(pid, 0).ok
        assert contract.get_milestone(pid, 0).unwrap().completed
        assert contract.get_milestone(pid, 5).error == ErrorCode.MILESTONE_NOT_FOUND
