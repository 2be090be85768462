"""
Logging setup for the reconciliation CLI and service.

Log records go to stderr so rich tables printed on stdout stay clean for
piping. An optional rotating file keeps DEBUG detail for later audit of
ingest row errors and reconciliation runs.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO, Union

APP_LOGGER_NAME = "receipt_recon"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    log_format: Optional[str] = None,
    sql_echo: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the receipt_recon logger hierarchy.

    Args:
        level: Console level, as a logging constant or a name like "debug"
        log_file: Rotating log file that also receives DEBUG records
        log_format: Console format string
        sql_echo: Let SQLAlchemy's statement log through at INFO
        stream: Console stream, stderr when omitted

    Returns:
        The application logger
    """
    if isinstance(level, str):
        level = level_from_name(level)

    logger = logging.getLogger(APP_LOGGER_NAME)
    # Handlers are replaced, not stacked, when the CLI reconfigures
    logger.handlers = []

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format or DEFAULT_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(level)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)

    return logger


def level_from_name(name: str) -> int:
    """Translate a configured level name such as "debug" into a logging level."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO
