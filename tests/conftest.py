"""
Shared test fixtures for db-client tests.

This module provides:
- A fake MySQL driver (see tests/fakes.py)
- A connected DatabaseClient backed by the fake driver
- A logger that propagates to pytest's caplog
"""

from __future__ import annotations

import pytest

from db_client import DatabaseClient
from db_client.logging import StructuredLogger

from tests.fakes import FakeConnection, FakeDriver


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger("db_client.tests", level="DEBUG", json_output=False)


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def connection(driver: FakeDriver) -> FakeConnection:
    return driver.connection


@pytest.fixture
def client(driver: FakeDriver, logger: StructuredLogger):
    db = DatabaseClient("db.test", "app", "secret", "shop", logger=logger, driver=driver)
    # Drop the session bootstrap so tests only see their own statements
    driver.connection.executed.clear()
    yield db
    db.close()
