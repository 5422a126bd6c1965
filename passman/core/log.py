"""
Logging for passman.

Module loggers carry a redaction filter, so anything that looks like a
credential is masked before a handler ever sees it. Entry ids and vault
paths are fine to log; passwords, secrets and plaintext never are.
"""

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Pattern, Union

ROOT_LOGGER_NAME = "passman"
REDACTED = "[REDACTED]"

_SENSITIVE_PATTERNS: list[tuple[str, Pattern[str]]] = [
    ("password", re.compile(r'(?i)\b(password|passwd|pwd)\s*[=:]\s*["\']?[^\s"\',]+["\']?')),
    ("secret", re.compile(r'(?i)\b(secret|private[_-]?key)\s*[=:]\s*["\']?[^\s"\',]+["\']?')),
    ("token", re.compile(r'(?i)\b(token|bearer)\s*[=:]\s*["\']?[^\s"\',]+["\']?')),
    ("key", re.compile(r'(?i)\b(key)\s*[=:]\s*["\']?[^\s"\',]+["\']?')),
]

# Long encoded blobs are most likely key material
_BLOB_PATTERNS: list[Pattern[str]] = [
    # base64 without "/", with at least one digit or "+"
    # base64 runs with a digit or "+"; "/" is left out so long paths survive
    re.compile(r"(?<![A-Za-z0-9+])(?=[A-Za-z0-9+]*[0-9+])[A-Za-z0-9+]{40,}={0,2}"),
]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"


def redact(text: str) -> str:
    """Mask credential-looking substrings in text."""
    result = text
    for name, pattern in _SENSITIVE_PATTERNS:
        result = pattern.sub(f"{name}={REDACTED}", result)
    for pattern in _BLOB_PATTERNS:
        result = pattern.sub(REDACTED, result)
    return result


class SecretRedactionFilter(logging.Filter):
    """
    Rewrites a record's message and string arguments through redact().

    The record is always kept, only sanitized.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg and isinstance(record.msg, str):
            record.msg = redact(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: redact(v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    redact(arg) if isinstance(arg, str) else arg for arg in record.args
                )
        return True


_filter = SecretRedactionFilter()


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the passman namespace with redaction attached."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(name)
    if not any(isinstance(f, SecretRedactionFilter) for f in logger.filters):
        logger.addFilter(_filter)
    return logger


def configure_logging(
    level: Union[int, str] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Install handlers on the passman logger.

    Calling it again replaces the handlers it installed before. The console
    handler writes to stderr; the optional file handler rotates at max_bytes.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        console_handler.addFilter(_filter)
        logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter(FILE_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        file_handler.addFilter(_filter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
