"""
vestledger Configuration

Settings come from environment variables, read once at import:

    VESTLEDGER_STORE_PATH    JSON state file used by the CLI
    VESTLEDGER_LOG_LEVEL     DEBUG, INFO, WARNING, ERROR or CRITICAL
    VESTLEDGER_LOG_FILE      optional rotating JSON log file
    VESTLEDGER_ENVIRONMENT   label attached to every log record
"""

from __future__ import annotations

import logging
import os

from vestledger.core.ledger_exceptions import ConfigurationError

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _get_log_level(env_var: str, default: str) -> str:
    value = os.getenv(env_var, default).strip().upper() or default
    if value == "WARN":
        value = "WARNING"
    if value not in VALID_LOG_LEVELS:
        raise ConfigurationError(
            f"{env_var} must be one of {', '.join(VALID_LOG_LEVELS)}, got {value!r}",
            details={"env_var": env_var},
        )
    return value


STORE_PATH = os.getenv(
    "VESTLEDGER_STORE_PATH", os.path.join(os.getcwd(), "data", "ledger_state.json")
)
LOG_LEVEL = _get_log_level("VESTLEDGER_LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("VESTLEDGER_LOG_FILE", "").strip() or None
ENVIRONMENT = os.getenv("VESTLEDGER_ENVIRONMENT", "development").strip() or "development"
