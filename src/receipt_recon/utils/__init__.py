"""Utility modules."""

from .exceptions import (
    ErrorKind,
    ReconciliationError,
    ParseError,
    IneligibleRecordError,
    DuplicateMatchError,
    PersistenceError,
    ConfigurationError,
    ReportGenerationError,
)
from .logging_config import setup_logging

__all__ = [
    "ErrorKind",
    "ReconciliationError",
    "ParseError",
    "IneligibleRecordError",
    "DuplicateMatchError",
    "PersistenceError",
    "ConfigurationError",
    "ReportGenerationError",
    "setup_logging",
]
