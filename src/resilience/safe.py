"""Run an operation that must not raise."""
import inspect
import logging
from typing import Any, Callable, Optional

from .classification import ErrorClassifier
from .strategies.base import run_operation
from .strategies.retry import RetryExecutor
from .types import Operation, RetryPolicy

logger = logging.getLogger(__name__)

_MISSING = object()


async def safe_execute(
    operation: Operation,
    fallback: Any = _MISSING,
    retry: bool = False,
    max_retries: int = 3,
    on_error: Optional[Callable[[Exception], Any]] = None,
    classifier: Optional[ErrorClassifier] = None,
) -> Any:
    """Execute ``operation``, optionally with retries, degrading to ``fallback``.

    ``fallback`` may be a plain value or a zero-argument callable (sync or
    async). Without a fallback the classified error is re-raised after
    logging and ``on_error``.

    Raises:
        ValueError: ``retry`` is set and ``max_retries`` is below 1
    """
    classifier = classifier or ErrorClassifier()
    # Built outside the try so a bad policy raises instead of reaching the fallback
    executor = RetryExecutor(RetryPolicy(max_attempts=max_retries), classifier=classifier) if retry else None
    try:
        if executor is not None:
            return await executor.execute(operation)
        return await run_operation(operation)
    except Exception as failure:
        error = classifier.to_error(failure)
        logger.error(f"Operation failed: {error}")

        if on_error is not None:
            result = on_error(error)
            if inspect.isawaitable(result):
                await result

        if fallback is _MISSING:
            if error is failure:
                raise
            raise error from failure
        if callable(fallback):
            return await run_operation(fallback)
        return fallback
