"""
vestledger - Structured Logging

One JSON object per record, on stderr and optionally in a rotating file.
Ledger modules log through ``logging.getLogger(__name__)`` and pass their
structured fields as ``extra={"event": ..., ...}``; those fields land at the
top level of the JSON object next to the service and environment labels.

Usage:
    from vestledger.core.logging_config import setup_logging

    logger = setup_logging(name="vestledger", level="INFO")
    logger.info("Claim processed", extra={"event": "cw20.claim_vested"})
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger


class LedgerJsonFormatter(jsonlogger.JsonFormatter):
    """Labels every record with service, environment and a lower-case level."""

    def __init__(self, service: str, environment: str) -> None:
        # timestamp=True makes python-json-logger add an ISO-8601 UTC "timestamp"
        super().__init__("%(name)s %(message)s", timestamp=True)
        self.service = service
        self.environment = environment

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname.lower()
        log_record["service"] = self.service
        log_record["environment"] = self.environment


def _remove_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    name: str = "vestledger",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "production",
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Attach JSON handlers to the ``name`` logger, replacing earlier ones.

    Console records go to stderr so CLI output on stdout stays parseable.
    ``log_file`` adds a RotatingFileHandler (``max_bytes`` per file,
    ``backup_count`` files kept). Handlers inherit the logger's level.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    _remove_handlers(logger)

    formatter = LedgerJsonFormatter(service=name.split(".")[0], environment=environment)
    handlers = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def shutdown_logging(name: str = "vestledger") -> None:
    """Detach and close the handlers installed by setup_logging."""
    _remove_handlers(logging.getLogger(name))
