"""
Tests for strategy composition, token refresh and the strategy factory.
"""
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from resilience.classification import ErrorCategory, ErrorDescriptor
from resilience.exceptions import (
    AllRecoveryStrategiesFailedError,
    AuthenticationError,
    ClassifiedError,
    ValidationError,
)
from resilience.strategies import (
    CircuitBreaker,
    CompositeStrategy,
    FallbackExecutor,
    RecoveryStrategy,
    RecoveryStrategyFactory,
    RetryExecutor,
    TokenRefreshStrategy,
)
from resilience.types import RetryPolicy

from .fakes import HttpStatusError


class StubStrategy(RecoveryStrategy):
    """Strategy with scripted answers."""

    def __init__(self, applies: bool = True, result: Any = None, error: Exception = None):
        super().__init__()
        self.applies = applies
        self.result = result
        self.error = error
        self.recovered = []

    def can_recover(self, descriptor: ErrorDescriptor) -> bool:
        return self.applies

    async def recover(self, descriptor, operation):
        self.recovered.append(descriptor)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def descriptor():
    return ErrorDescriptor.for_category(ErrorCategory.NETWORK, message="refused")


class TestCompositeStrategy:
    """Test cases for CompositeStrategy."""

    def test_can_recover_if_any_child_can(self, descriptor):
        """Test that applicability is the union of the children."""
        composite = CompositeStrategy([StubStrategy(applies=False), StubStrategy(applies=True)])

        assert composite.can_recover(descriptor) is True
        assert CompositeStrategy([StubStrategy(applies=False)]).can_recover(descriptor) is False

    @pytest.mark.asyncio
    async def test_first_applicable_strategy_wins(self, descriptor):
        """Test that inapplicable strategies are skipped and later ones not used."""
        skipped = StubStrategy(applies=False, result="skipped")
        winner = StubStrategy(result="won")
        unused = StubStrategy(result="unused")
        composite = CompositeStrategy([skipped, winner, unused])

        result = await composite.recover(descriptor, AsyncMock())

        assert result == "won"
        assert skipped.recovered == []
        assert unused.recovered == []

    @pytest.mark.asyncio
    async def test_failed_strategy_falls_through(self, descriptor):
        """Test that a failing strategy hands over to the next."""
        failing = StubStrategy(error=RuntimeError("retry exhausted"))
        second = StubStrategy(result="second")
        composite = CompositeStrategy([failing, second])

        assert await composite.recover(descriptor, AsyncMock()) == "second"
        assert failing.recovered == [descriptor]

    @pytest.mark.asyncio
    async def test_all_fail(self, descriptor, notifier):
        """Test the aggregate error when every strategy fails."""
        first_error = RuntimeError("one")
        second_error = RuntimeError("two")
        composite = CompositeStrategy(
            [StubStrategy(error=first_error), StubStrategy(error=second_error)],
            notifier=notifier,
        )

        with pytest.raises(AllRecoveryStrategiesFailedError) as exc_info:
            await composite.recover(descriptor, AsyncMock())

        assert exc_info.value.errors == [first_error, second_error]
        assert exc_info.value.descriptor is descriptor
        assert notifier.errors == [exc_info.value]

    @pytest.mark.asyncio
    async def test_none_applicable(self, descriptor):
        """Test that no applicable strategy is also a total failure."""
        composite = CompositeStrategy([StubStrategy(applies=False)])

        with pytest.raises(AllRecoveryStrategiesFailedError) as exc_info:
            await composite.recover(descriptor, AsyncMock())

        assert exc_info.value.errors == []

    def test_add_strategy_and_name(self):
        """Test building the list incrementally."""
        composite = CompositeStrategy([])
        composite.add_strategy(StubStrategy())

        assert len(composite.strategies) == 1
        assert composite.name == "Composite([StubStrategy])"

    @pytest.mark.asyncio
    async def test_execute_success_runs_once(self):
        """Test that a healthy operation bypasses recovery."""
        strategy = StubStrategy(result="recovered")
        composite = CompositeStrategy([strategy])

        assert await composite.execute(AsyncMock(return_value="fresh")) == "fresh"
        assert strategy.recovered == []

    @pytest.mark.asyncio
    async def test_execute_recovers_failure(self, sleep, rng):
        """Test execute with a real retry strategy."""
        operation = AsyncMock(side_effect=[ConnectionRefusedError(), ConnectionRefusedError(), "ok"])
        retry = RetryExecutor(RetryPolicy(max_attempts=3, jitter_ratio=0.0), sleep=sleep, rng=rng)
        composite = CompositeStrategy([retry])

        assert await composite.execute(operation) == "ok"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_execute_raises_classified_error_when_unrecoverable(self):
        """Test that a failure nobody handles surfaces as its classified error."""
        composite = CompositeStrategy([RetryExecutor()])

        with pytest.raises(ClassifiedError) as exc_info:
            await composite.execute(AsyncMock(side_effect=HttpStatusError(404)))

        assert exc_info.value.descriptor.status_code == 404

    @pytest.mark.asyncio
    async def test_retry_then_fallback(self, sleep, rng):
        """Test that a fallback answers once retries are exhausted."""
        operation = AsyncMock(side_effect=ConnectionRefusedError())
        composite = CompositeStrategy([
            RetryExecutor(RetryPolicy(max_attempts=2, jitter_ratio=0.0), sleep=sleep, rng=rng),
            FallbackExecutor([Mock(return_value="cached")]),
        ])

        assert await composite.execute(operation) == "cached"
        # first call plus two retry attempts
        assert operation.await_count == 3


class TestTokenRefreshStrategy:
    """Test cases for TokenRefreshStrategy."""

    def test_applies_to_authentication_only(self):
        """Test applicability."""
        strategy = TokenRefreshStrategy(refresh=AsyncMock())

        assert strategy.can_recover(strategy.classifier.classify(AuthenticationError("expired"))) is True
        assert strategy.can_recover(strategy.classifier.classify(HttpStatusError(401))) is True
        assert strategy.can_recover(strategy.classifier.classify(ValidationError("bad"))) is False

    @pytest.mark.asyncio
    async def test_refreshes_then_reruns(self):
        """Test that credentials are refreshed before the retry."""
        order = []

        async def refresh():
            order.append("refresh")

        async def operation():
            order.append("operation")
            return "profile"

        strategy = TokenRefreshStrategy(refresh=refresh)
        descriptor = strategy.classifier.classify(AuthenticationError("expired"))

        assert await strategy.recover(descriptor, operation) == "profile"
        assert order == ["refresh", "operation"]

    @pytest.mark.asyncio
    async def test_composite_recovers_expired_session(self):
        """Test the authentication path through a composite."""
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise AuthenticationError("token expired", status_code=401)
            return "ok"

        refresh = Mock(return_value=None)
        composite = CompositeStrategy([RetryExecutor(), TokenRefreshStrategy(refresh=refresh)])

        assert await composite.execute(operation) == "ok"
        refresh.assert_called_once()
        assert calls == 2


class TestRecoveryStrategyFactory:
    """Test cases for RecoveryStrategyFactory."""

    def test_create_individual_strategies(self, clock):
        """Test the per-strategy constructors."""
        assert isinstance(RecoveryStrategyFactory.create_retry_strategy(RetryPolicy()), RetryExecutor)
        assert isinstance(RecoveryStrategyFactory.create_fallback_strategy([lambda: 1]), FallbackExecutor)

        breaker = RecoveryStrategyFactory.create_circuit_breaker(name="maps", clock=clock)
        assert isinstance(breaker, CircuitBreaker)
        assert breaker.name == "maps"

        composite = RecoveryStrategyFactory.create_composite_strategy([breaker])
        assert composite.strategies == [breaker]

    def test_default_strategy_shares_collaborators(self, notifier):
        """Test the default retry plus circuit breaker composition."""
        logger = Mock()

        composite = RecoveryStrategyFactory.create_default_strategy(logger=logger, notifier=notifier)

        assert [type(s) for s in composite.strategies] == [RetryExecutor, CircuitBreaker]
        assert all(s.logger is logger for s in composite.strategies)
        assert all(s.notifier is notifier for s in composite.strategies)
