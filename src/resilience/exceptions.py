"""
Exceptions for the resilience system.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .types import ErrorCategory, ErrorSeverity

if TYPE_CHECKING:
    from .classification.categories import ErrorDescriptor


class ResilienceError(Exception):
    """Base exception for the resilience system.

    Subclasses set the default category and severity of the taxonomy.
    ``descriptor`` is attached once the failure has been classified.
    """

    default_category = ErrorCategory.UNKNOWN
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        category: Optional[ErrorCategory] = None,
        severity: Optional[ErrorSeverity] = None,
        status_code: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.severity = severity or self.default_severity
        self.status_code = status_code
        self.metadata = metadata or {}
        self.timestamp = datetime.now(timezone.utc)
        self.descriptor: Optional["ErrorDescriptor"] = None

    @property
    def retryable(self) -> bool:
        return bool(self.descriptor and self.descriptor.retryable)

    def to_dict(self) -> dict:
        """Convert to dictionary for presentation layers."""
        cause = self.__cause__
        return {
            "type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
            "cause": {
                "type": type(cause).__name__,
                "message": str(cause),
            } if cause is not None else None,
        }


class NetworkError(ResilienceError):
    """Transport-level failure, or an HTTP failure without a more specific type."""

    default_category = ErrorCategory.NETWORK
    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, status_code=status_code, **kwargs)
        self.endpoint = endpoint


@dataclass
class ValidationErrorDetail:
    """A single field-level validation problem."""
    field: str
    message: str
    value: Any = None
    code: Optional[str] = None


class ValidationError(ResilienceError):
    """Input rejected by validation. Never retried."""

    default_category = ErrorCategory.VALIDATION
    default_severity = ErrorSeverity.LOW

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[ValidationErrorDetail]] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.validation_errors = validation_errors or []


class AuthenticationError(ResilienceError):
    """Missing or expired credentials."""

    default_category = ErrorCategory.AUTHENTICATION
    default_severity = ErrorSeverity.HIGH

    def __init__(self, message: str, code: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.code = code


class AuthorizationError(ResilienceError):
    """Authenticated caller lacks permission."""

    default_category = ErrorCategory.AUTHORIZATION
    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        action: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.resource = resource
        self.action = action


class BusinessLogicError(ResilienceError):
    """A domain rule was violated."""

    default_category = ErrorCategory.BUSINESS_LOGIC
    default_severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, code: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.code = code


class InternalSystemError(ResilienceError):
    """Failure originating in our own system."""

    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.CRITICAL


class ExternalServiceError(ResilienceError):
    """Failure reported by a third-party dependency."""

    default_category = ErrorCategory.EXTERNAL_SERVICE
    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        service: str = "unknown",
        status_code: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, status_code=status_code, **kwargs)
        self.service = service


class DatabaseError(ResilienceError):
    """Failure talking to a database."""

    default_category = ErrorCategory.DATABASE
    default_severity = ErrorSeverity.CRITICAL

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        code: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.query = query
        self.code = code


class ClassifiedError(ResilienceError):
    """Raised in place of a raw failure once it has been classified.

    The raw failure is available as ``__cause__`` and ``descriptor.cause``.
    """

    def __init__(self, descriptor: "ErrorDescriptor"):
        super().__init__(
            descriptor.message,
            category=descriptor.category,
            severity=descriptor.severity,
            status_code=descriptor.status_code,
        )
        self.descriptor = descriptor

    @property
    def cause(self) -> Any:
        return self.descriptor.cause


class CircuitBreakerOpenError(ResilienceError):
    """Raised when a circuit breaker rejects a call without invoking it."""

    default_category = ErrorCategory.EXTERNAL_SERVICE
    default_severity = ErrorSeverity.HIGH

    def __init__(self, breaker_name: str, retry_after: float):
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open; retry after {retry_after:.2f}s"
        )
        self.breaker_name = breaker_name
        self.retry_after = retry_after


class AllRecoveryStrategiesFailedError(ResilienceError):
    """Raised when no recovery strategy could handle a failure."""

    def __init__(self, descriptor: "ErrorDescriptor", errors: Optional[List[Exception]] = None):
        super().__init__(
            "All recovery strategies failed",
            category=descriptor.category,
            severity=descriptor.severity,
            status_code=descriptor.status_code,
        )
        self.descriptor = descriptor
        self.errors = errors or []
