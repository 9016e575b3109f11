"""Error classification system for resilience."""
from ..types import ErrorCategory, ErrorSeverity
from .categories import CATEGORY_DEFAULTS, ErrorDescriptor
from .classifier import ErrorClassifier, classify
from .patterns import TRANSPORT_PATTERNS, ErrorPattern

__all__ = [
    "CATEGORY_DEFAULTS",
    "ErrorCategory",
    "ErrorClassifier",
    "ErrorDescriptor",
    "ErrorPattern",
    "ErrorSeverity",
    "TRANSPORT_PATTERNS",
    "classify",
]
