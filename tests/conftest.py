"""Pytest configuration and shared fixtures."""

import os
import time
from unittest.mock import Mock

import pytest

from leasekeeper.infrastructure.config import ParticipantConfig
from leasekeeper.infrastructure.in_memory_broadcast_bus import InMemoryBroadcastHub
from leasekeeper.infrastructure.in_memory_lease_store import InMemoryLeaseMedium
from leasekeeper.infrastructure.in_memory_metrics import InMemoryMetrics
from leasekeeper.ports.logger import LoggerPort
from tests.fakes import FakeClock, ManualScheduler


@pytest.fixture
def mock_logger():
    """Create a mock logger."""
    return Mock(spec=LoggerPort)


@pytest.fixture
def clock():
    """Clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def metrics():
    return InMemoryMetrics()


@pytest.fixture
def medium(mock_logger):
    """Shared lease medium standing in for the durable store."""
    return InMemoryLeaseMedium(logger=mock_logger)


@pytest.fixture
def hub(mock_logger):
    return InMemoryBroadcastHub(logger=mock_logger)


@pytest.fixture
def config():
    """Short timings matching the textbook scenario: timeout 5000, interval 2000."""
    return ParticipantConfig(namespace="test-app", timeout_ms=5000, interval_ms=2000)


@pytest.fixture(scope="session")
def nats_container():
    """Start NATS container for integration tests."""
    if os.getenv("SKIP_INTEGRATION_TESTS", "").lower() == "true":
        pytest.skip("Integration tests disabled")

    if os.getenv("NATS_URL"):
        yield os.getenv("NATS_URL")
        return

    try:
        from testcontainers.nats import NatsContainer

        container = NatsContainer("nats:2.10-alpine")
        container.with_command("-js")
        container.start()
    except Exception as e:
        pytest.skip(f"NATS container unavailable: {e}")

    # Wait for NATS to be ready
    time.sleep(2)

    yield f"nats://localhost:{container.get_exposed_port(4222)}"

    container.stop()
