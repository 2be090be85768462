"""Persistence backends for reconciliation data."""

from .interface import ReconciliationStore, StorageError
from .memory import InMemoryStore
from .sql import SQLAlchemyStore

__all__ = ["ReconciliationStore", "StorageError", "InMemoryStore", "SQLAlchemyStore"]
