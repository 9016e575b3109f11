"""
Base class for recovery strategies.
"""
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..classification import ErrorClassifier, ErrorDescriptor
from ..types import Notifier, Operation


async def run_operation(operation: Operation) -> Any:
    """Call a zero-argument operation, awaiting the result if needed."""
    result = operation()
    if inspect.isawaitable(result):
        return await result
    return result


class RecoveryStrategy(ABC):
    """Common contract for every recovery strategy.

    A strategy reports whether it can handle a classified failure and, when
    asked to, recovers the call site that produced it and returns the value
    the call site should have produced.
    """

    def __init__(
        self,
        classifier: Optional[ErrorClassifier] = None,
        logger: Optional[logging.Logger] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.classifier = classifier or ErrorClassifier()
        self.logger = logger or logging.getLogger(type(self).__module__)
        self.notifier = notifier

    @abstractmethod
    def can_recover(self, descriptor: ErrorDescriptor) -> bool:
        """Determine if this strategy applies to the failure."""
        pass

    @abstractmethod
    async def recover(self, descriptor: ErrorDescriptor, operation: Operation) -> Any:
        """
        Recover from a failure of ``operation``.

        Args:
            descriptor: Classification of the failure being recovered from
            operation: The call site that failed

        Returns:
            The value the call site should produce
        """
        pass

    @property
    def name(self) -> str:
        """Strategy name for logging."""
        return type(self).__name__

    def _notify(self, error: Exception) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(error)
        except Exception as e:
            self.logger.warning(f"Notifier failed in {self.name}: {e}")
