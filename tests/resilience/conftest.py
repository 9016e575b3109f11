"""
Shared fixtures for the resilience tests.

Time and randomness are always faked; no test sleeps for real.
"""
import pytest

from resilience.strategies.circuit_breaker import CircuitBreakerRegistry

from .fakes import FakeClock, RecordingNotifier, RecordingSleep, StubRandom


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep(clock):
    return RecordingSleep(clock)


@pytest.fixture
def rng():
    return StubRandom(0.0)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def registry():
    return CircuitBreakerRegistry()
