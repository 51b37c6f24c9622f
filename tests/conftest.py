"""
Shared test fixtures for nfc-console tests.
"""

from __future__ import annotations

import pytest

from nfc_console.config import LifecycleConfig, Settings
from nfc_console.session import Session
from tests._testkit import FakeClient, FakeClock, FakeJobQueue


@pytest.fixture(autouse=True)
def _reset_fake_clients():
    FakeClient.instances.clear()
    yield
    FakeClient.instances.clear()


@pytest.fixture
def job_queue():
    return FakeJobQueue()


@pytest.fixture
def settings():
    """Settings with short timers so lifecycle tests stay fast."""
    return Settings(lifecycle=LifecycleConfig(quiet_timeout_ms=20, poll_interval_ms=10))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(settings, clock):
    return Session(settings, client_factory=FakeClient, clock=clock)
