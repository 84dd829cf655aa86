"""
QDAO Governance Ledger Package

Core imports are lazily loaded so that importing a submodule (for example
`qdao.constants`) does not configure logging as a side effect.
For direct module access, import from submodules:

    from qdao.governance import GovernanceEngine
    from qdao.contract import DaoContract
    from qdao.exceptions import ErrorCode
"""

__version__ = "0.1.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'GovernanceEngine':
        from .governance import GovernanceEngine
        return GovernanceEngine
    elif name == 'DaoContract':
        from .contract import DaoContract
        return DaoContract
    elif name == 'ErrorCode':
        from .exceptions import ErrorCode
        return ErrorCode
    raise AttributeError(f"module 'qdao' has no attribute {name!r}")

__all__ = ['GovernanceEngine', 'DaoContract', 'ErrorCode']
