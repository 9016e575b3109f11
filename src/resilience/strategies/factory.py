"""Factory helpers for building recovery strategies."""
import logging
from typing import Any, Optional, Sequence

from ..classification import ErrorClassifier
from ..types import CircuitBreakerConfig, Notifier, Operation, RetryPolicy
from .base import RecoveryStrategy
from .circuit_breaker import CircuitBreaker
from .composite import CompositeStrategy
from .fallback import FallbackExecutor
from .retry import RetryExecutor


class RecoveryStrategyFactory:
    """Builds strategies that share the same collaborators."""

    @staticmethod
    def create_retry_strategy(policy: Optional[RetryPolicy] = None, **collaborators: Any) -> RetryExecutor:
        return RetryExecutor(policy, **collaborators)

    @staticmethod
    def create_fallback_strategy(fallbacks: Sequence[Operation], **collaborators: Any) -> FallbackExecutor:
        return FallbackExecutor(fallbacks, **collaborators)

    @staticmethod
    def create_circuit_breaker(
        config: Optional[CircuitBreakerConfig] = None,
        name: str = "default",
        **collaborators: Any,
    ) -> CircuitBreaker:
        return CircuitBreaker(config, name=name, **collaborators)

    @staticmethod
    def create_composite_strategy(
        strategies: Sequence[RecoveryStrategy],
        **collaborators: Any,
    ) -> CompositeStrategy:
        return CompositeStrategy(strategies, **collaborators)

    @classmethod
    def create_default_strategy(
        cls,
        classifier: Optional[ErrorClassifier] = None,
        logger: Optional[logging.Logger] = None,
        notifier: Optional[Notifier] = None,
    ) -> CompositeStrategy:
        """Retry first, then a circuit breaker."""
        shared = {"classifier": classifier, "logger": logger, "notifier": notifier}
        return CompositeStrategy(
            [
                cls.create_retry_strategy(**shared),
                cls.create_circuit_breaker(**shared),
            ],
            **shared,
        )
