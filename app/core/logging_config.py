"""
Structured logging configuration for the account-center service.

JSON lines on stdout in production, plain lines in development. A
redaction filter masks credentials that reach a record through ``extra``.
"""

import logging
import sys
from typing import Any, Dict
from datetime import datetime, timezone
from pythonjsonlogger import jsonlogger

# Record attributes that may carry a credential or a password proof
SENSITIVE_FIELDS = frozenset({
    "password",
    "new_password",
    "code",
    "secret",
    "access_token",
    "verification_record_id",
    "verification_id",
    "api_key",
})
REDACTED = "[redacted]"

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class RedactingFilter(logging.Filter):
    """Mask sensitive ``extra`` attributes before any formatter sees them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in SENSITIVE_FIELDS:
            if getattr(record, field, None):
                setattr(record, field, REDACTED)
        return True


class AccountJsonFormatter(jsonlogger.JsonFormatter):

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName

        if record.levelno >= logging.WARNING:
            log_record['line'] = record.lineno
            log_record['pathname'] = record.pathname


def resolve_log_level(log_level: str) -> int:
    """Map a LOG_LEVEL value ("debug", "INFO", ...) to a logging level, falling back to INFO."""
    level = logging.getLevelName(log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        log_level: LOG_LEVEL setting, case-insensitive
        json_logs: JSON lines when True, human-readable lines otherwise
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(RedactingFilter())

    if json_logs:
        formatter = AccountJsonFormatter(
            '%(timestamp)s %(level)s %(logger)s %(module)s %(funcName)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    console_handler.setFormatter(formatter)

    root_logger.setLevel(resolve_log_level(log_level))
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
