"""
Treasury

A single non-negative balance, credited by deposits and debited by milestone
funding, plus the total-tokens-issued counter that quorum math is based on.
The issuance counter only ever grows.
"""

from ..exceptions import InvalidAmountError, TreasuryInsufficientFundsError
from ..logger import get_logger
from ..storage import KeyValueStore

logger = get_logger(__name__)

_KEY = "treasury"


def require_amount(amount, what: str, allow_zero: bool = False) -> int:
    """Raise InvalidAmountError unless *amount* is a positive int (or zero, if allowed)."""
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidAmountError(f"{what} must be an integer, got {amount!r}")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmountError(f"{what} must be positive, got {amount}")
    return amount


class Treasury:
    """Treasury balance and issuance counter stored as one record."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    def _load(self) -> dict:
        return self._store.get(_KEY) or {"balance": 0, "totalTokensIssued": 0}

    @property
    def balance(self) -> int:
        return self._load()["balance"]

    @property
    def total_tokens_issued(self) -> int:
        return self._load()["totalTokensIssued"]

    def deposit(self, amount: int) -> int:
        """Credit *amount*; returns the new balance."""
        require_amount(amount, "Deposit")
        data = self._load()
        data["balance"] += amount
        self._store.put(_KEY, data)
        logger.info(f"Treasury deposit: +{amount} (balance={data['balance']})")
        return data["balance"]

    def withdraw(self, amount: int) -> int:
        """Debit *amount*; the balance never goes negative."""
        require_amount(amount, "Withdrawal")
        data = self._load()
        if data["balance"] < amount:
            raise TreasuryInsufficientFundsError(
                f"Treasury balance {data['balance']} < requested {amount}"
            )
        data["balance"] -= amount
        self._store.put(_KEY, data)
        logger.info(f"Treasury disbursement: -{amount} (balance={data['balance']})")
        return data["balance"]

    def record_issuance(self, amount: int) -> int:
        data = self._load()
        data["totalTokensIssued"] += amount
        self._store.put(_KEY, data)
        return data["totalTokensIssued"]

    def __repr__(self) -> str:
        data = self._load()
        return f"<Treasury balance={data['balance']} issued={data['totalTokensIssued']}>"
