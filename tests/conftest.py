"""Shared test fixtures for all test modules."""

from unittest.mock import AsyncMock

import pytest

from pmpoller.adapters.poller import Poller
from pmpoller.adapters.storage.datastore import DataStore
from tests.helpers import FakeClock, fetch_response


@pytest.fixture
def clock() -> FakeClock:
    """Monotonic clock driving subscription expiry."""
    return FakeClock(now_ms=10_000.0)


@pytest.fixture
def context() -> AsyncMock:
    """Mocked remote metrics API."""
    mock = AsyncMock()
    mock.find_metric_metadata.return_value = {}
    mock.fetch.return_value = fetch_response([])
    return mock


@pytest.fixture
def datastore() -> DataStore:
    """Data store whose retention window never evicts fixed test timestamps."""
    return DataStore(retention_time_ms=25_000, clock=lambda: 0.0)


@pytest.fixture
def poller(context: AsyncMock, datastore: DataStore, clock: FakeClock) -> Poller:
    """Poller with a 10s subscription max age."""
    return Poller(context, datastore, max_age_ms=10_000, clock=clock)
