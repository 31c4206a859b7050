"""Shared test fixtures for the ERP integration test suite."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from clients.vault_client import reset_vault_cache
from core.event_bus import EventBus
from erp.adapters.mock import MockAdapter
from erp.cache import MemoryCache
from erp.config import ERPConfig
from erp.provider import Provider
from erp.registry import ProviderRegistry
from jobs.queue import InMemoryJobQueue


# =============================================================================
# CLOCKS
# =============================================================================


class FakeClock:
    """Settable UTC clock. Call it for the current time, advance() to move it."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeMonotonic:
    """Settable monotonic seconds source for cache expiry."""

    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture(autouse=True)
def reset_vault():
    """Vault client singleton and secret cache never leak between tests."""
    reset_vault_cache()
    yield
    reset_vault_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


# =============================================================================
# ERP FIXTURES
# =============================================================================


@pytest.fixture
def mock_erp() -> MockAdapter:
    """Fresh mock adapter with default heating fixtures."""
    return MockAdapter()


@pytest.fixture
def erp_config() -> ERPConfig:
    return ERPConfig(provider=Provider.MOCK)


@pytest.fixture
def registry(erp_config, mock_erp) -> ProviderRegistry:
    """Registry whose mock provider is the `mock_erp` fixture."""
    return ProviderRegistry(erp_config, factories={Provider.MOCK: lambda config: mock_erp})


@pytest.fixture
def cache(monotonic) -> MemoryCache:
    return MemoryCache(clock=monotonic)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def job_queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture
def captured_events(event_bus):
    """Every event published on `event_bus`, by class name."""
    received: dict[str, list] = {}

    def capture(name):
        def handler(event):
            received.setdefault(name, []).append(event)
        return handler

    for name in ("JobSucceeded", "JobFailedPermanently", "PaymentSubmitted"):
        event_bus.subscribe(name, capture(name))
    return received
