"""
Client-side resilience: error classification, retry, circuit breaking and fallback.
"""
from .classification import (
    CATEGORY_DEFAULTS,
    ErrorClassifier,
    ErrorDescriptor,
    classify,
)
from .decorator import resilient
from .exceptions import (
    AllRecoveryStrategiesFailedError,
    AuthenticationError,
    AuthorizationError,
    BusinessLogicError,
    CircuitBreakerOpenError,
    ClassifiedError,
    DatabaseError,
    ExternalServiceError,
    InternalSystemError,
    NetworkError,
    ResilienceError,
    ValidationError,
    ValidationErrorDetail,
)
from .http import ApiResponse, ResilientHttpClient
from .safe import safe_execute
from .strategies import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitBreakerStats,
    CompositeStrategy,
    ExponentialBackoff,
    FallbackExecutor,
    RecoveryStrategy,
    RecoveryStrategyFactory,
    RetryExecutor,
    TokenRefreshStrategy,
    execute_with_fallback,
    execute_with_retry,
    get_circuit_breaker,
)
from .types import (
    CircuitBreakerConfig,
    CircuitState,
    ErrorCategory,
    ErrorSeverity,
    ResilienceConfig,
    RetryPolicy,
)


__all__ = [
    # Configuration and enums
    'CircuitBreakerConfig',
    'CircuitState',
    'ErrorCategory',
    'ErrorSeverity',
    'ResilienceConfig',
    'RetryPolicy',

    # Classification
    'CATEGORY_DEFAULTS',
    'ErrorClassifier',
    'ErrorDescriptor',
    'classify',

    # Exceptions
    'AllRecoveryStrategiesFailedError',
    'AuthenticationError',
    'AuthorizationError',
    'BusinessLogicError',
    'CircuitBreakerOpenError',
    'ClassifiedError',
    'DatabaseError',
    'ExternalServiceError',
    'InternalSystemError',
    'NetworkError',
    'ResilienceError',
    'ValidationError',
    'ValidationErrorDetail',

    # Strategies
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
    'execute_with_fallback',
    'execute_with_retry',
    'get_circuit_breaker',

    # Helpers
    'ApiResponse',
    'ResilientHttpClient',
    'resilient',
    'safe_execute',
]
