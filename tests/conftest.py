import pytest
import logging
import os
import sys
from unittest.mock import Mock

# Add the project root to the path so we can import from the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from typing_trainer.core.session_store import SessionStore
from typing_trainer.streaming.connections import ConnectionRegistry
from tests.test_helpers import FakeClock, FakeConnection


@pytest.fixture
def test_logger():
    """Create a logger for testing."""
    logger = logging.getLogger("test_logger")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def mock_logger():
    """Mock logger for testing."""
    return Mock()


@pytest.fixture
def store(test_logger):
    return SessionStore(logger=test_logger)


@pytest.fixture
def registry(test_logger):
    return ConnectionRegistry(logger=test_logger)


@pytest.fixture
def clock():
    return FakeClock(start=1_700_000_000_000)


@pytest.fixture
def connection():
    return FakeConnection()
