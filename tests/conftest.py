"""
Shared fixtures.

Test strategy:
1. Unit tests for the pure core (normalizer, allocator, grouping, reducer)
2. Flow tests for the controller and ledger with in-memory collaborators
3. No real storage or clipboard in tests
"""

import pytest

from fairshare.config import PersistenceSettings, get_settings


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    """No backoff sleeps between retried writes."""
    monkeypatch.setenv("FAIRSHARE_PERSISTENCE_RETRY_WAIT_MIN_SECONDS", "0")
    monkeypatch.setenv("FAIRSHARE_PERSISTENCE_RETRY_WAIT_MAX_SECONDS", "0")
    monkeypatch.delenv("FAIRSHARE_PERSISTENCE_PREFERENCES_PATH", raising=False)
    monkeypatch.delenv("FAIRSHARE_PERSISTENCE_SERIALIZE_RECORD_WRITES", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def persistence_settings():
    return PersistenceSettings(
        retry_attempts=3,
        retry_wait_min_seconds=0,
        retry_wait_max_seconds=0,
    )
