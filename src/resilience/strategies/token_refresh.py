"""
Refresh credentials, then re-run the call site once.
"""
import logging
from typing import Any, Callable, Optional

from ..classification import ErrorClassifier, ErrorDescriptor
from ..types import ErrorCategory, Notifier, Operation
from .base import RecoveryStrategy, run_operation

logger = logging.getLogger(__name__)


class TokenRefreshStrategy(RecoveryStrategy):
    """Handles authentication failures.

    Authentication errors are never retried by ``RetryExecutor``; a
    composite that holds this strategy treats them as recoverable by
    refreshing the session first.
    """

    def __init__(
        self,
        refresh: Callable[[], Any],
        classifier: Optional[ErrorClassifier] = None,
        logger: Optional[logging.Logger] = None,
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(classifier, logger, notifier)
        self.refresh = refresh

    def can_recover(self, descriptor: ErrorDescriptor) -> bool:
        return descriptor.category == ErrorCategory.AUTHENTICATION

    async def recover(self, descriptor: ErrorDescriptor, operation: Operation) -> Any:
        self.logger.info("Refreshing credentials after authentication failure")
        await run_operation(self.refresh)
        return await run_operation(operation)
