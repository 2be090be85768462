"""Shared fixtures for the reconciliation test suite."""

import logging

import pytest

from receipt_recon.config import ReconConfig
from receipt_recon.service import ReconciliationService
from receipt_recon.storage.memory import InMemoryStore
from receipt_recon.storage.sql import SQLAlchemyStore
from receipt_recon.utils.logging_config import APP_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_app_logger():
    """Drop handlers installed by setup_logging so they never outlive a test."""
    yield
    logging.getLogger(APP_LOGGER_NAME).handlers = []


@pytest.fixture
def config() -> ReconConfig:
    return ReconConfig()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each store implementation in turn."""
    if request.param == "memory":
        backend = InMemoryStore()
    else:
        backend = SQLAlchemyStore("sqlite:///:memory:")
    yield backend
    backend.close()


@pytest.fixture
def sql_store():
    backend = SQLAlchemyStore("sqlite:///:memory:")
    yield backend
    backend.close()


@pytest.fixture
def service(config) -> ReconciliationService:
    return ReconciliationService(InMemoryStore(), config)


@pytest.fixture
def statement_csv() -> str:
    return (
        "Date,Description,Amount\n"
        "2024-01-15,WALMART SUPERCENTER #1234,-45.67\n"
        "2024-01-16,Coffee Shop,4.50\n"
        "not-a-date,Broken Row,-10.00\n"
        "2024-01-18,SALARY DEPOSIT,2500.00\n"
        "2024-01-19,Shell Gas Station,(30.00)\n"
    )
