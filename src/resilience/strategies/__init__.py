"""
Recovery strategies: retry, circuit breaker, fallback and their composition.
"""
from .base import RecoveryStrategy, run_operation
from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitBreakerStats,
    default_registry,
    get_circuit_breaker,
)
from .composite import CompositeStrategy
from .exponential import ExponentialBackoff, compute_backoff_delay
from .factory import RecoveryStrategyFactory
from .fallback import FallbackExecutor, execute_with_fallback
from .retry import RetryExecutor, execute_with_retry
from .token_refresh import TokenRefreshStrategy


__all__ = [
    'CircuitBreaker',
    'CircuitBreakerRegistry',
    'CircuitBreakerStats',
    'CompositeStrategy',
    'ExponentialBackoff',
    'FallbackExecutor',
    'RecoveryStrategy',
    'RecoveryStrategyFactory',
    'RetryExecutor',
    'TokenRefreshStrategy',
    'compute_backoff_delay',
    'default_registry',
    'execute_with_fallback',
    'execute_with_retry',
    'get_circuit_breaker',
    'run_operation',
]
