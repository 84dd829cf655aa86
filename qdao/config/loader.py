"""
QDAO TOML Configuration Loader

Loads the governance parameters from dao.toml with environment variable
overrides. Defaults come from qdao.constants (which in turn reads `.env`).

Environment variable mapping:
    [phases] submission_length      → QDAO_SUBMISSION_PHASE_LENGTH
    [phases] discussion_length      → QDAO_DISCUSSION_PHASE_LENGTH
    [phases] voting_length          → QDAO_VOTING_PHASE_LENGTH
    [thresholds] quorum_percent     → QDAO_QUORUM_THRESHOLD
    [thresholds] acceptance_percent → QDAO_ACCEPTANCE_THRESHOLD
    [proposals] max_milestones      → QDAO_MAX_MILESTONES

Configuration is read once at deployment; the engine keeps the values it was
constructed with for the lifetime of the process.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    ACCEPTANCE_THRESHOLD_PERCENT,
    DISCUSSION_PHASE_LENGTH,
    MAX_MILESTONES,
    QUORUM_THRESHOLD_PERCENT,
    SUBMISSION_PHASE_LENGTH,
    VOTING_PHASE_LENGTH,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _env_int(name: str) -> Optional[int]:
    v = os.environ.get(name)
    if v is None or v == "":
        return None
    try:
        return int(v)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {v!r}")


def _override(name: str, current: int) -> int:
    v = _env_int(name)
    return current if v is None else v


def _int_value(section: str, data: Dict[str, Any], key: str, default: int) -> int:
    v = data.get(key, default)
    if not isinstance(v, int) or isinstance(v, bool):
        raise ConfigurationError(f"{section}.{key} must be an integer, got {v!r}")
    return v


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PhaseConfig:
    """[phases] section. Lengths are in block heights."""
    submission_length: int = int(SUBMISSION_PHASE_LENGTH)
    discussion_length: int = int(DISCUSSION_PHASE_LENGTH)
    voting_length: int = int(VOTING_PHASE_LENGTH)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhaseConfig":
        return cls(
            submission_length=_int_value("phases", data, "submission_length", int(SUBMISSION_PHASE_LENGTH)),
            discussion_length=_int_value("phases", data, "discussion_length", int(DISCUSSION_PHASE_LENGTH)),
            voting_length=_int_value("phases", data, "voting_length", int(VOTING_PHASE_LENGTH)),
        )

    def with_env(self) -> "PhaseConfig":
        return PhaseConfig(
            submission_length=_override("QDAO_SUBMISSION_PHASE_LENGTH", self.submission_length),
            discussion_length=_override("QDAO_DISCUSSION_PHASE_LENGTH", self.discussion_length),
            voting_length=_override("QDAO_VOTING_PHASE_LENGTH", self.voting_length),
        )

    def validate(self) -> None:
        for name in ("submission_length", "discussion_length", "voting_length"):
            _int_value("phases", self.__dict__, name, 0)
            if getattr(self, name) < 0:
                raise ConfigurationError(f"phases.{name} must be >= 0")


@dataclass(frozen=True)
class ThresholdConfig:
    """[thresholds] section. Integer percentages."""
    quorum_percent: int = int(QUORUM_THRESHOLD_PERCENT)
    acceptance_percent: int = int(ACCEPTANCE_THRESHOLD_PERCENT)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThresholdConfig":
        return cls(
            quorum_percent=_int_value("thresholds", data, "quorum_percent", int(QUORUM_THRESHOLD_PERCENT)),
            acceptance_percent=_int_value("thresholds", data, "acceptance_percent", int(ACCEPTANCE_THRESHOLD_PERCENT)),
        )

    def with_env(self) -> "ThresholdConfig":
        return ThresholdConfig(
            quorum_percent=_override("QDAO_QUORUM_THRESHOLD", self.quorum_percent),
            acceptance_percent=_override("QDAO_ACCEPTANCE_THRESHOLD", self.acceptance_percent),
        )

    def validate(self) -> None:
        for name in ("quorum_percent", "acceptance_percent"):
            value = getattr(self, name)
            _int_value("thresholds", self.__dict__, name, 0)
            if not 0 <= value <= 100:
                raise ConfigurationError(f"thresholds.{name} must be within 0..100, got {value}")


@dataclass(frozen=True)
class ProposalConfig:
    """[proposals] section."""
    max_milestones: int = int(MAX_MILESTONES)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposalConfig":
        return cls(max_milestones=_int_value("proposals", data, "max_milestones", int(MAX_MILESTONES)))

    def with_env(self) -> "ProposalConfig":
        return ProposalConfig(
            max_milestones=_override("QDAO_MAX_MILESTONES", self.max_milestones),
        )

    def validate(self) -> None:
        _int_value("proposals", self.__dict__, "max_milestones", 0)
        if self.max_milestones < 1:
            raise ConfigurationError("proposals.max_milestones must be >= 1")


# ---------------------------------------------------------------------------
# Top-level
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GovernanceConfig:
    """Top-level governance configuration, aggregating all sections."""
    phases: PhaseConfig = field(default_factory=PhaseConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    proposals: ProposalConfig = field(default_factory=ProposalConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        """Create GovernanceConfig from a parsed TOML dict."""
        return cls(
            phases=PhaseConfig.from_dict(data.get("phases", {})),
            thresholds=ThresholdConfig.from_dict(data.get("thresholds", {})),
            proposals=ProposalConfig.from_dict(data.get("proposals", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "GovernanceConfig":
        """
        Load configuration from a TOML file, then apply env overrides.

        A missing file is not an error: defaults are used.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls().with_env()
            cfg.validate()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e

        cfg = cls.from_dict(raw).with_env()
        cfg.validate()
        return cfg

    # --- env overrides ----------------------------------------------------

    def with_env(self) -> "GovernanceConfig":
        """Return a copy with environment variable overrides applied."""
        return GovernanceConfig(
            phases=self.phases.with_env(),
            thresholds=self.thresholds.with_env(),
            proposals=self.proposals.with_env(),
        )

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.phases.validate()
        self.thresholds.validate()
        self.proposals.validate()
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phases": {
                "submission_length": self.phases.submission_length,
                "discussion_length": self.phases.discussion_length,
                "voting_length": self.phases.voting_length,
            },
            "thresholds": {
                "quorum_percent": self.thresholds.quorum_percent,
                "acceptance_percent": self.thresholds.acceptance_percent,
            },
            "proposals": {
                "max_milestones": self.proposals.max_milestones,
            },
        }


def load_config(path: Optional[str] = None) -> GovernanceConfig:
    """
    Load governance configuration.

    Resolution order:
        1. Explicit *path* argument
        2. QDAO_CONFIG env var
        3. ./dao.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("QDAO_CONFIG", "dao.toml")

    return GovernanceConfig.from_file(path)
