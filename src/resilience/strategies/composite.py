"""
Composite strategy that dispatches to the first applicable strategy.
"""
import logging
from typing import Any, List, Optional, Sequence

from ..classification import ErrorClassifier, ErrorDescriptor
from ..exceptions import AllRecoveryStrategiesFailedError
from ..types import Notifier, Operation
from .base import RecoveryStrategy, run_operation

logger = logging.getLogger(__name__)


class CompositeStrategy(RecoveryStrategy):
    """
    Holds an ordered list of strategies.

    ``recover`` walks the list in order and hands the failure to each
    strategy that reports it can recover, stopping at the first one that
    succeeds. A strategy that raises is logged and skipped.
    """

    def __init__(
        self,
        strategies: Sequence[RecoveryStrategy],
        classifier: Optional[ErrorClassifier] = None,
        logger: Optional[logging.Logger] = None,
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(classifier, logger, notifier)
        self.strategies: List[RecoveryStrategy] = list(strategies)

    def add_strategy(self, strategy: RecoveryStrategy) -> None:
        self.strategies.append(strategy)

    def can_recover(self, descriptor: ErrorDescriptor) -> bool:
        return any(strategy.can_recover(descriptor) for strategy in self.strategies)

    async def recover(self, descriptor: ErrorDescriptor, operation: Operation) -> Any:
        """
        Recover from ``descriptor`` using the first strategy that succeeds.

        Raises:
            AllRecoveryStrategiesFailedError: No applicable strategy succeeded
        """
        errors: List[Exception] = []

        for strategy in self.strategies:
            if not strategy.can_recover(descriptor):
                continue
            self.logger.debug(f"Recovering {descriptor.category.value} failure with {strategy.name}")
            try:
                return await strategy.recover(descriptor, operation)
            except Exception as e:
                errors.append(e)
                self.logger.warning(
                    f"Recovery strategy {strategy.name} failed, trying next: {e}"
                )

        error = AllRecoveryStrategiesFailedError(descriptor, errors)
        self.logger.error(
            f"All recovery strategies failed for {descriptor.category.value} failure "
            f"({len(errors)} tried): {descriptor.message}"
        )
        self._notify(error)
        raise error

    async def execute(self, operation: Operation) -> Any:
        """
        Run ``operation`` once and recover from its failure.

        Raises:
            ResilienceError: Classified error when no strategy applies
            AllRecoveryStrategiesFailedError: Every applicable strategy failed
        """
        try:
            return await run_operation(operation)
        except Exception as failure:
            descriptor = self.classifier.classify(failure)
            if not self.can_recover(descriptor):
                error = self.classifier.to_error(failure, descriptor)
                if error is failure:
                    raise
                raise error from failure
            return await self.recover(descriptor, operation)

    @property
    def name(self) -> str:
        inner = ", ".join(strategy.name for strategy in self.strategies)
        return f"Composite([{inner}])"
