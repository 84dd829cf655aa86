"""
QDAO Constants

This module consolidates the process-wide constants and environment
configuration of the governance ledger. Values are read once from `.env`
at import time; anything not present falls back to the defaults below.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'True',
}

# Durations are measured in block heights.
GOVERNANCE_DEFAULTS = {
    'SUBMISSION_PHASE_LENGTH':         '144',
    'DISCUSSION_PHASE_LENGTH':         '432',
    'VOTING_PHASE_LENGTH':             '1008',
    'QUORUM_THRESHOLD_PERCENT':        '30',
    'ACCEPTANCE_THRESHOLD_PERCENT':    '60',
    'MAX_MILESTONES':                  '10',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# VOTING
# ==================================================================================
# Vote weight is 1 + floor(balance / QUADRATIC_WEIGHT_DIVISOR). This is a linear
# stand-in for a square root and must stay as-is for ledger compatibility.
QUADRATIC_WEIGHT_BASE = 1
QUADRATIC_WEIGHT_DIVISOR = 10


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__

class ConfigInt(int):
    """
    Int subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = LOGGER_DEFAULTS | GOVERNANCE_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

def parse_int(v):
    """Convert a decimal integer string into int; anything else is returned untouched."""
    if not isinstance(v, str):
        return v
    s = v.strip()
    if s.lstrip("-").isdigit():
        return int(s)
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    if key in GOVERNANCE_DEFAULTS:
        value = parse_int(value_raw)
        default_val = parse_int(default_raw)
        if not isinstance(value, int):
            # Unparseable override; keep the protocol default
            value = default_val
        namespace[key] = ConfigInt(value, default_val)
        continue

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
