"""
Fallback executor for graceful degradation.
"""
import logging
from typing import Any, List, Optional, Sequence

from ..classification import ErrorClassifier, ErrorDescriptor
from ..types import Notifier, Operation
from .base import RecoveryStrategy, run_operation

logger = logging.getLogger(__name__)


class FallbackExecutor(RecoveryStrategy):
    """
    Tries a primary operation, then each fallback in order.

    Holds no state beyond its list of fallbacks, so one instance can serve
    concurrent call sites.
    """

    def __init__(
        self,
        fallbacks: Sequence[Operation],
        classifier: Optional[ErrorClassifier] = None,
        logger: Optional[logging.Logger] = None,
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(classifier, logger, notifier)
        self.fallbacks: List[Operation] = list(fallbacks)

    def can_recover(self, descriptor: ErrorDescriptor) -> bool:
        return len(self.fallbacks) > 0

    async def recover(self, descriptor: ErrorDescriptor, operation: Operation) -> Any:
        """The primary already failed; consult the fallbacks only."""
        return await self._run_chain(self.fallbacks, first_index=1, context=None)

    async def execute(self, primary: Operation, context: Optional[str] = None) -> Any:
        """
        Execute ``primary``, falling back in order on failure.

        Returns:
            The first successful result

        Raises:
            ResilienceError: Classified error of the last failure when all fail
        """
        return await self._run_chain([primary, *self.fallbacks], first_index=0, context=context)

    async def _run_chain(
        self,
        operations: Sequence[Operation],
        first_index: int,
        context: Optional[str],
    ) -> Any:
        if not operations:
            raise ValueError("No operations to execute")

        label = f" [{context}]" if context else ""
        total = first_index + len(operations)

        for offset, operation in enumerate(operations):
            index = first_index + offset
            is_primary = index == 0
            self.logger.debug(
                f"Attempting operation{label} {index + 1}/{total} "
                f"({'primary' if is_primary else f'fallback {index}'})"
            )
            try:
                return await run_operation(operation)
            except Exception as failure:
                descriptor = self.classifier.classify(failure)
                remaining = total - index - 1

                if remaining > 0:
                    self.logger.warning(
                        f"Operation{label} {index + 1}/{total} failed "
                        f"({descriptor.category.value}): {descriptor.message}; trying fallback"
                    )
                    continue

                error = self.classifier.to_error(failure, descriptor)
                self.logger.error(
                    f"Operation{label} {index + 1}/{total} failed "
                    f"({descriptor.category.value}): {descriptor.message}; no more fallbacks"
                )
                self._notify(error)
                if error is failure:
                    raise
                raise error from failure

        raise RuntimeError("fallback chain exited without a result")

    @property
    def name(self) -> str:
        return f"Fallback(fallbacks={len(self.fallbacks)})"


async def execute_with_fallback(
    primary: Operation,
    fallbacks: Sequence[Operation],
    **collaborators: Any,
) -> Any:
    """Run ``primary`` then ``fallbacks`` in order; return the first success."""
    executor = FallbackExecutor(fallbacks, **collaborators)
    return await executor.execute(primary)
