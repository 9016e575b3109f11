"""Main error classifier implementation."""
import logging
from collections.abc import Mapping
from typing import Any, List, Optional

from ..exceptions import (
    CircuitBreakerOpenError,
    ClassifiedError,
    InternalSystemError,
    ResilienceError,
)
from ..types import ErrorCategory, ErrorSeverity
from .categories import CATEGORY_DEFAULTS, ErrorDescriptor
from .patterns import TRANSPORT_PATTERNS, ErrorPattern

logger = logging.getLogger(__name__)

RETRYABLE_CLIENT_STATUSES = {408: ErrorCategory.NETWORK, 429: ErrorCategory.EXTERNAL_SERVICE}
CLIENT_STATUS_CATEGORIES = {
    400: ErrorCategory.VALIDATION,
    401: ErrorCategory.AUTHENTICATION,
    403: ErrorCategory.AUTHORIZATION,
    422: ErrorCategory.VALIDATION,
}


class ErrorClassifier:
    """Maps arbitrary failures onto the error taxonomy.

    Rules, first match wins:

    1. Transport problem (connection refused, DNS, fetch abort) without a
       status code: Network, High, retryable.
    2. HTTP status code: 408/429 retryable at Medium, 5xx retryable at High
       (Critical for System-origin failures), every other 4xx non-retryable.
    3. Typed package errors take the defaults of their category.
    4. Anything else: Unknown, Medium, not retryable.
    """

    def __init__(self, extra_patterns: Optional[List[ErrorPattern]] = None):
        self.patterns = TRANSPORT_PATTERNS.copy()
        if extra_patterns:
            self.patterns.extend(extra_patterns)

    def classify(self, failure: Any) -> ErrorDescriptor:
        """Classify a failure. Never raises."""
        try:
            return self._classify(failure)
        except Exception as e:
            logger.debug(f"Falling back to unknown classification for {type(failure).__name__}: {e}")
            return ErrorDescriptor.for_category(ErrorCategory.UNKNOWN, cause=failure)

    def to_error(self, failure: Any, descriptor: Optional[ErrorDescriptor] = None) -> ResilienceError:
        """Return the classified error to raise in place of ``failure``.

        Package errors are annotated in place; anything else is wrapped in a
        ``ClassifiedError`` chained to the original.
        """
        descriptor = descriptor or self.classify(failure)
        if isinstance(failure, ResilienceError):
            if failure.descriptor is None:
                failure.descriptor = descriptor
            return failure
        error = ClassifiedError(descriptor)
        if isinstance(failure, BaseException):
            error.__cause__ = failure
        return error

    def _classify(self, failure: Any) -> ErrorDescriptor:
        if isinstance(failure, ResilienceError) and failure.descriptor is not None:
            return failure.descriptor

        message = _extract_message(failure)

        if isinstance(failure, CircuitBreakerOpenError):
            return ErrorDescriptor(
                category=ErrorCategory.EXTERNAL_SERVICE,
                severity=ErrorSeverity.HIGH,
                retryable=False,
                cause=failure,
                message=message,
            )

        status_code = _extract_status_code(failure)

        if status_code is None:
            for pattern in self.patterns:
                if pattern.matches(failure, message):
                    logger.debug(f"Matched transport pattern '{pattern.name}' for {type(failure).__name__}")
                    return ErrorDescriptor(
                        category=ErrorCategory.NETWORK,
                        severity=ErrorSeverity.HIGH,
                        retryable=True,
                        cause=failure,
                        message=message,
                    )
        elif 400 <= status_code < 600:
            return self._classify_status(failure, status_code, message)

        if isinstance(failure, ResilienceError):
            _, retryable = CATEGORY_DEFAULTS[failure.category]
            return ErrorDescriptor(
                category=failure.category,
                severity=failure.severity,
                retryable=retryable,
                status_code=status_code,
                cause=failure,
                message=message,
            )

        return ErrorDescriptor.for_category(
            ErrorCategory.UNKNOWN,
            cause=failure,
            message=message,
            status_code=status_code,
        )

    def _classify_status(self, failure: Any, status_code: int, message: str) -> ErrorDescriptor:
        typed_category = failure.category if isinstance(failure, ResilienceError) else None

        if status_code >= 500:
            category = typed_category or ErrorCategory.EXTERNAL_SERVICE
            system_origin = isinstance(failure, InternalSystemError) or category == ErrorCategory.SYSTEM
            return ErrorDescriptor(
                category=category,
                severity=ErrorSeverity.CRITICAL if system_origin else ErrorSeverity.HIGH,
                retryable=True,
                status_code=status_code,
                cause=failure,
                message=message,
            )

        if status_code in RETRYABLE_CLIENT_STATUSES:
            return ErrorDescriptor(
                category=RETRYABLE_CLIENT_STATUSES[status_code],
                severity=ErrorSeverity.MEDIUM,
                retryable=True,
                status_code=status_code,
                cause=failure,
                message=message,
            )

        category = CLIENT_STATUS_CATEGORIES.get(status_code)
        if category in (ErrorCategory.AUTHENTICATION, ErrorCategory.AUTHORIZATION):
            severity = ErrorSeverity.HIGH
        else:
            severity = ErrorSeverity.LOW
        if category is None:
            category = typed_category or ErrorCategory.BUSINESS_LOGIC

        return ErrorDescriptor(
            category=category,
            severity=severity,
            retryable=False,
            status_code=status_code,
            cause=failure,
            message=message,
        )


def _extract_message(failure: Any) -> str:
    try:
        if isinstance(failure, Mapping):
            message = failure.get("message") or failure.get("error") or ""
            return str(message)
        return str(failure)
    except Exception:
        return ""


def _as_status(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if 100 <= value <= 599:
        return value
    return None


def _lookup(source: Any, key: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(key)
    try:
        return getattr(source, key, None)
    except Exception:
        return None


def _extract_status_code(failure: Any) -> Optional[int]:
    """Find an HTTP status on the failure or on its response.

    Covers ``requests.HTTPError.response.status_code``,
    ``aiohttp.ClientResponseError.status`` and ``urllib.error.HTTPError.code``.
    Non-integer codes such as ``BusinessLogicError.code`` are ignored.
    """
    candidates = [
        _lookup(failure, "status_code"),
        _lookup(failure, "statusCode"),
        _lookup(failure, "status"),
        _lookup(failure, "code"),
    ]
    response = _lookup(failure, "response")
    if response is not None:
        candidates.append(_lookup(response, "status_code"))
        candidates.append(_lookup(response, "status"))

    for candidate in candidates:
        status = _as_status(candidate)
        if status is not None:
            return status
    return None


_default_classifier = ErrorClassifier()


def classify(failure: Any) -> ErrorDescriptor:
    """Classify ``failure`` with the default rules."""
    return _default_classifier.classify(failure)
