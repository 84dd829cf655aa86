"""
QDAO Exceptions

Error codes and exception classes for the governance ledger. Every
precondition failure maps to exactly one `ErrorCode`; the contract layer
returns that code to callers instead of raising.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Stable result codes reported by the contract interface."""
    NOT_AUTHORIZED = 100
    ALREADY_MEMBER = 101
    NOT_MEMBER = 102
    INSUFFICIENT_TOKENS = 103
    PROPOSAL_NOT_FOUND = 104
    INVALID_PROPOSAL_STATE = 105
    ALREADY_VOTED = 106
    VOTING_CLOSED = 107
    PROPOSAL_ACTIVE = 108
    INVALID_AMOUNT = 109
    MILESTONE_NOT_FOUND = 110
    MILESTONE_ALREADY_FUNDED = 111
    DELEGATION_NOT_ALLOWED = 112
    INVALID_PHASE = 113
    TREASURY_INSUFFICIENT_FUNDS = 114

    def __str__(self) -> str:
        return f"{self.name}({self.value})"


class QDAOException(Exception):
    """Base exception for QDAO."""
    pass


class ConfigurationError(QDAOException):
    """Configuration error."""
    pass


class StorageError(QDAOException):
    """Key-value store misuse (bad key, nested transaction)."""
    pass


class GovernanceError(QDAOException):
    """Base governance exception. Subclasses pin a single error code."""

    code: ErrorCode

    def __init__(self, message: str = ""):
        super().__init__(message or self.code.name)
        self.message = message or self.code.name


class NotAuthorizedError(GovernanceError):
    code = ErrorCode.NOT_AUTHORIZED


class AlreadyMemberError(GovernanceError):
    code = ErrorCode.ALREADY_MEMBER


class NotMemberError(GovernanceError):
    code = ErrorCode.NOT_MEMBER


class InsufficientTokensError(GovernanceError):
    code = ErrorCode.INSUFFICIENT_TOKENS


class ProposalNotFoundError(GovernanceError):
    code = ErrorCode.PROPOSAL_NOT_FOUND


class InvalidProposalStateError(GovernanceError):
    code = ErrorCode.INVALID_PROPOSAL_STATE


class AlreadyVotedError(GovernanceError):
    code = ErrorCode.ALREADY_VOTED


class VotingClosedError(GovernanceError):
    code = ErrorCode.VOTING_CLOSED


class ProposalActiveError(GovernanceError):
    code = ErrorCode.PROPOSAL_ACTIVE


class InvalidAmountError(GovernanceError):
    code = ErrorCode.INVALID_AMOUNT


class MilestoneNotFoundError(GovernanceError):
    code = ErrorCode.MILESTONE_NOT_FOUND


class MilestoneAlreadyFundedError(GovernanceError):
    code = ErrorCode.MILESTONE_ALREADY_FUNDED


class DelegationNotAllowedError(GovernanceError):
    code = ErrorCode.DELEGATION_NOT_ALLOWED


class InvalidPhaseError(GovernanceError):
    code = ErrorCode.INVALID_PHASE


class TreasuryInsufficientFundsError(GovernanceError):
    code = ErrorCode.TREASURY_INSUFFICIENT_FUNDS
