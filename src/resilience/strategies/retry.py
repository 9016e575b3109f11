"""
Retry executor with exponential backoff and jitter.
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from ..classification import ErrorClassifier, ErrorDescriptor
from ..types import Notifier, Operation, RandomSource, RetryPolicy, Sleeper
from .base import RecoveryStrategy, run_operation
from .exponential import ExponentialBackoff

logger = logging.getLogger(__name__)

RetryCallback = Callable[[int, ErrorDescriptor], Any]


class RetryExecutor(RecoveryStrategy):
    """
    Runs an operation up to ``policy.max_attempts`` times.

    Attempts are strictly sequential. A non-retryable failure, or a failure
    on the last attempt, is re-raised as its classified error immediately.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        classifier: Optional[ErrorClassifier] = None,
        logger: Optional[logging.Logger] = None,
        rng: Optional[RandomSource] = None,
        sleep: Optional[Sleeper] = None,
        notifier: Optional[Notifier] = None,
        on_retry: Optional[RetryCallback] = None,
    ):
        super().__init__(classifier, logger, notifier)
        self.policy = policy or RetryPolicy()
        self.backoff = ExponentialBackoff(self.policy, rng)
        self.sleep = sleep or asyncio.sleep
        self.on_retry = on_retry

    def can_recover(self, descriptor: ErrorDescriptor) -> bool:
        return descriptor.retryable

    async def recover(self, descriptor: ErrorDescriptor, operation: Operation) -> Any:
        """Re-run the failed operation under this executor's policy."""
        return await self.execute(operation)

    async def execute(
        self,
        operation: Operation,
        on_retry: Optional[RetryCallback] = None,
        context: Optional[str] = None,
    ) -> Any:
        """
        Execute ``operation`` with retries.

        Args:
            operation: Zero-argument callable, sync or async
            on_retry: Called with (attempt, descriptor) before each backoff sleep
            context: Label included in log messages

        Returns:
            The operation's result

        Raises:
            ResilienceError: The classified error of the last failing attempt
        """
        callback = on_retry or self.on_retry
        max_attempts = self.policy.max_attempts
        label = f" [{context}]" if context else ""

        for attempt in range(1, max_attempts + 1):
            self.logger.debug(f"Attempting operation{label} ({attempt}/{max_attempts})")
            try:
                return await run_operation(operation)
            except Exception as failure:
                descriptor = self.classifier.classify(failure)
                error = self.classifier.to_error(failure, descriptor)

                if not descriptor.retryable or attempt == max_attempts:
                    reason = "exhausted" if descriptor.retryable else "non-retryable"
                    self.logger.error(
                        f"Operation{label} failed after {attempt} attempt(s) ({reason}, "
                        f"{descriptor.category.value}): {descriptor.message}"
                    )
                    self._notify(error)
                    if error is failure:
                        raise
                    raise error from failure

                delay = self.backoff.calculate_delay(attempt)
                self.logger.warning(
                    f"Operation{label} failed on attempt {attempt}/{max_attempts} "
                    f"({descriptor.category.value}): {descriptor.message}; retrying in {delay:.3f}s"
                )

                if callback is not None:
                    result = callback(attempt, descriptor)
                    if inspect.isawaitable(result):
                        await result

                await self.sleep(delay)

        # max_attempts >= 1, so the loop always returns or raises
        raise RuntimeError("retry loop exited without a result")

    @property
    def name(self) -> str:
        return f"Retry(max_attempts={self.policy.max_attempts}, {self.backoff.name})"


async def execute_with_retry(
    operation: Operation,
    policy: Optional[RetryPolicy] = None,
    on_retry: Optional[RetryCallback] = None,
    **collaborators: Any,
) -> Any:
    """Run ``operation`` through a one-off ``RetryExecutor``.

    ``collaborators`` are forwarded to the executor (classifier, logger,
    rng, sleep, notifier).
    """
    executor = RetryExecutor(policy, **collaborators)
    return await executor.execute(operation, on_retry=on_retry)
