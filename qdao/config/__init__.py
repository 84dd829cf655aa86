"""
QDAO Governance Configuration

Loads dao.toml at deployment. Environment variables override TOML values.
"""

from .loader import (
    GovernanceConfig,
    PhaseConfig,
    ProposalConfig,
    ThresholdConfig,
    load_config,
)

__all__ = [
    "GovernanceConfig",
    "PhaseConfig",
    "ProposalConfig",
    "ThresholdConfig",
    "load_config",
]
