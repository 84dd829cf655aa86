"""
Call context for governance operations.

Every mutating operation receives the caller identity and the current block
height explicitly instead of looking them up from a global. `BlockClock` is a
synthetic ledger clock used by the contract facade, simulations and tests.
"""

from dataclasses import dataclass
from typing import Any, Dict

__all__ = ["CallContext", "BlockClock"]


def _ensure_height(v: int) -> int:
    if not isinstance(v, int) or isinstance(v, bool) or v < 0:
        raise ValueError(f"block height must be a non-negative int, got {v!r}")
    return v


@dataclass(frozen=True)
class CallContext:
    """Who is calling, and at which block height."""
    caller: str
    height: int

    def __post_init__(self):
        if not self.caller:
            raise ValueError("caller identity is required")
        _ensure_height(self.height)

    def to_dict(self) -> Dict[str, Any]:
        return {"caller": self.caller, "height": self.height}


class BlockClock:
    """Monotonic block height source."""

    def __init__(self, height: int = 0):
        self._height = _ensure_height(height)

    @property
    def height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move the chain forward by *blocks* and return the new height."""
        if blocks < 0:
            raise ValueError("block height cannot move backwards")
        self._height += blocks
        return self._height

    def context_for(self, caller: str) -> CallContext:
        return CallContext(caller=caller, height=self._height)

    def __repr__(self) -> str:
        return f"<BlockClock height={self._height}>"
