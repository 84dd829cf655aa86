"""
Configuration Test Suite

Coverage:
  - .env-backed constants and their wrappers
  - GovernanceConfig: TOML loading, env overrides, validation, to_dict
"""

import os
import sys

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from qdao import constants
from qdao.config import GovernanceConfig, PhaseConfig, ThresholdConfig, load_config
from qdao.exceptions import ConfigurationError
from qdao.governance import GovernanceEngine


TOML = """
[phases]
submission_length = 1
discussion_length = 2
voting_length = 3

[thresholds]
quorum_percent = 25
acceptance_percent = 51

[proposals]
max_milestones = 4
"""

ENV_KEYS = [
    "QDAO_SUBMISSION_PHASE_LENGTH",
    "QDAO_DISCUSSION_PHASE_LENGTH",
    "QDAO_VOTING_PHASE_LENGTH",
    "QDAO_QUORUM_THRESHOLD",
    "QDAO_ACCEPTANCE_THRESHOLD",
    "QDAO_MAX_MILESTONES",
    "QDAO_CONFIG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestConstants:

    def test_config_wrappers(self):
        s = constants.ConfigString("x", "y")
        assert s == "x"
        assert s.default() == "y"
        b = constants.ConfigBool(False, True)
        assert b == False  # noqa: E712
        assert str(b) == "False"
        assert b.default() is True
        i = constants.ConfigInt(7, 10)
        assert i + 1 == 8
        assert i.default() == 10

    def test_parse_helpers(self):
        assert constants.parse_bool(" true ") is True
        assert constants.parse_bool("FALSE") is False
        assert constants.parse_bool("maybe") == "maybe"
        assert constants.parse_int(" 42 ") == 42
        assert constants.parse_int("4x") == "4x"

    def test_governance_defaults(self):
        assert constants.SUBMISSION_PHASE_LENGTH.default() == 144
        assert constants.DISCUSSION_PHASE_LENGTH.default() == 432
        assert constants.VOTING_PHASE_LENGTH.default() == 1008
        assert constants.QUORUM_THRESHOLD_PERCENT.default() == 30
        assert constants.ACCEPTANCE_THRESHOLD_PERCENT.default() == 60
        assert constants.MAX_MILESTONES.default() == 10

    def test_weight_constants(self):
        assert constants.QUADRATIC_WEIGHT_BASE == 1
        assert constants.QUADRATIC_WEIGHT_DIVISOR == 10


class TestGovernanceConfig:

    def test_from_dict(self):
        cfg = GovernanceConfig.from_dict({"phases": {"voting_length": 9}})
        assert cfg.phases.voting_length == 9
        assert cfg.phases.submission_length == int(constants.SUBMISSION_PHASE_LENGTH)
        assert cfg.thresholds.acceptance_percent == int(constants.ACCEPTANCE_THRESHOLD_PERCENT)

    def test_from_file(self, tmp_path):
        path = tmp_path / "dao.toml"
        path.write_text(TOML)
        cfg = GovernanceConfig.from_file(str(path))
        assert cfg.to_dict() == {
            "phases": {"submission_length": 1, "discussion_length": 2, "voting_length": 3},
            "thresholds": {"quorum_percent": 25, "acceptance_percent": 51},
            "proposals": {"max_milestones": 4},
        }

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = GovernanceConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg == GovernanceConfig()

    def test_malformed_file_raises(self, tmp_path):
        path = tmp_path / "dao.toml"
        path.write_text("[phases\nvoting_length = ")
        with pytest.raises(ConfigurationError):
            GovernanceConfig.from_file(str(path))

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "dao.toml"
        path.write_text(TOML)
        monkeypatch.setenv("QDAO_VOTING_PHASE_LENGTH", "77")
        monkeypatch.setenv("QDAO_QUORUM_THRESHOLD", "0")
        cfg = GovernanceConfig.from_file(str(path))
        assert cfg.phases.voting_length == 77
        assert cfg.thresholds.quorum_percent == 0
        assert cfg.phases.submission_length == 1

    def test_env_override_not_integer_raises(self, monkeypatch):
        monkeypatch.setenv("QDAO_MAX_MILESTONES", "ten")
        with pytest.raises(ConfigurationError):
            GovernanceConfig().with_env()

    def test_load_config_from_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.toml"
        path.write_text(TOML)
        monkeypatch.setenv("QDAO_CONFIG", str(path))
        assert load_config().proposals.max_milestones == 4

    @pytest.mark.parametrize("cfg", [
        GovernanceConfig(phases=PhaseConfig(submission_length=-1)),
        GovernanceConfig(thresholds=ThresholdConfig(quorum_percent=101)),
        GovernanceConfig(thresholds=ThresholdConfig(acceptance_percent=-1)),
        GovernanceConfig.from_dict({"proposals": {"max_milestones": 0}}),
    ])
    def test_validate_rejects(self, cfg):
        with pytest.raises(ConfigurationError):
            cfg.validate()

    def test_non_integer_value_raises(self, tmp_path):
        path = tmp_path / "dao.toml"
        path.write_text('[thresholds]\nquorum_percent = "30"\n')
        with pytest.raises(ConfigurationError, match="quorum_percent"):
            GovernanceConfig.from_file(str(path))

    @pytest.mark.parametrize("section,key,value", [
        ("phases", "voting_length", 1.5),
        ("proposals", "max_milestones", True),
    ])
    def test_from_dict_type_checks(self, section, key, value):
        with pytest.raises(ConfigurationError):
            GovernanceConfig.from_dict({section: {key: value}})

    def test_validate_type_checks(self):
        with pytest.raises(ConfigurationError):
            GovernanceConfig(thresholds=ThresholdConfig(quorum_percent="30")).validate()

    def test_engine_refuses_invalid_config(self):
        with pytest.raises(ConfigurationError):
            GovernanceEngine(config=GovernanceConfig(thresholds=ThresholdConfig(quorum_percent=150)))

    def test_config_is_immutable(self):
        cfg = GovernanceConfig()
        with pytest.raises(AttributeError):
            cfg.phases.voting_length = 1
