"""Error descriptor and the default taxonomy."""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..types import ErrorCategory, ErrorSeverity

# category -> (default severity, default retryable)
CATEGORY_DEFAULTS: Dict[ErrorCategory, Tuple[ErrorSeverity, bool]] = {
    ErrorCategory.NETWORK: (ErrorSeverity.HIGH, True),
    ErrorCategory.VALIDATION: (ErrorSeverity.LOW, False),
    ErrorCategory.AUTHENTICATION: (ErrorSeverity.HIGH, False),
    ErrorCategory.AUTHORIZATION: (ErrorSeverity.HIGH, False),
    ErrorCategory.BUSINESS_LOGIC: (ErrorSeverity.MEDIUM, False),
    ErrorCategory.SYSTEM: (ErrorSeverity.CRITICAL, True),
    ErrorCategory.EXTERNAL_SERVICE: (ErrorSeverity.HIGH, True),
    ErrorCategory.DATABASE: (ErrorSeverity.CRITICAL, True),
    ErrorCategory.UNKNOWN: (ErrorSeverity.MEDIUM, False),
}


@dataclass(frozen=True)
class ErrorDescriptor:
    """Result of classifying a single failure."""

    category: ErrorCategory
    severity: ErrorSeverity
    retryable: bool
    status_code: Optional[int] = None
    cause: Any = None
    message: str = ""

    @classmethod
    def for_category(
        cls,
        category: ErrorCategory,
        cause: Any = None,
        message: str = "",
        status_code: Optional[int] = None,
    ) -> 'ErrorDescriptor':
        """Build a descriptor with the taxonomy defaults for ``category``."""
        severity, retryable = CATEGORY_DEFAULTS[category]
        return cls(
            category=category,
            severity=severity,
            retryable=retryable,
            status_code=status_code,
            cause=cause,
            message=message,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "status_code": self.status_code,
            "message": self.message,
            "error_type": type(self.cause).__name__ if self.cause is not None else None,
        }
