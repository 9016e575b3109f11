"""Resilience decorator implementation.
"""
import asyncio
import dataclasses
import functools
import inspect
import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

from .exceptions import ResilienceError
from .strategies.base import run_operation
from .strategies.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, default_registry
from .strategies.retry import RetryExecutor
from .types import ResilienceConfig

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


async def _execute_with_timeout(func: Callable, args: tuple, kwargs: dict, timeout: float | None) -> Any:
    """Execute function with optional timeout."""
    if inspect.iscoroutinefunction(func):
        if timeout is None:
            return await func(*args, **kwargs)
        return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)

    if timeout is None:
        return func(*args, **kwargs)
    # For sync functions, run in executor with timeout
    loop = asyncio.get_running_loop()
    return await asyncio.wait_for(
        loop.run_in_executor(None, functools.partial(func, *args, **kwargs)),
        timeout=timeout
    )


def resilient(
    config: ResilienceConfig | None = None,
    *,
    max_attempts: int | None = None,
    initial_delay: float | None = None,
    backoff_multiplier: float | None = None,
    max_delay: float | None = None,
    jitter_ratio: float | None = None,
    timeout: float | None = None,
    circuit_breaker: str | None = None,
    fallback: Callable[..., Any] | None = None,
    registry: CircuitBreakerRegistry | None = None,
    **collaborators: Any,
) -> Callable[[F], F]:
    """Decorator to add retry, circuit breaking and fallback to functions.

    Each call runs inside a retry loop; every attempt goes through the
    circuit breaker when one is configured, so an open circuit ends the
    loop immediately. If the call still fails and ``fallback`` is given,
    the fallback is called with the same arguments.

    Args:
        config: Base configuration; keyword values below override it
        max_attempts: Maximum number of attempts (default: 3)
        initial_delay: Delay after the first failure in seconds (default: 1.0)
        backoff_multiplier: Factor applied per attempt (default: 2.0)
        max_delay: Cap on the backoff delay in seconds (default: 30.0)
        jitter_ratio: Jitter as a fraction of the delay (default: 0.1)
        timeout: Timeout for each attempt in seconds (default: None)
        circuit_breaker: Name of a shared breaker in ``registry``
        fallback: Called with the original arguments when the call fails
        registry: Breaker registry (default: the module-level registry)
        **collaborators: classifier, logger, rng, sleep, notifier, on_retry

    Returns:
        Decorated function; sync functions stay sync and must not be
        called from inside a running event loop

    """
    config = config or ResilienceConfig()
    overrides = {
        key: value for key, value in {
            "max_attempts": max_attempts,
            "initial_delay": initial_delay,
            "backoff_multiplier": backoff_multiplier,
            "max_delay": max_delay,
            "jitter_ratio": jitter_ratio,
        }.items() if value is not None
    }
    policy = dataclasses.replace(config.retry, **overrides)
    attempt_timeout = timeout if timeout is not None else config.timeout
    # an empty registry is falsy
    breaker_registry = registry if registry is not None else default_registry

    def decorator(func: F) -> F:
        func_name = f"{func.__module__}.{func.__qualname__}"
        executor = RetryExecutor(policy, **collaborators)
        use_breaker = circuit_breaker is not None or config.circuit_breaker is not None

        def _get_breaker() -> CircuitBreaker | None:
            if not use_breaker:
                return None
            return breaker_registry.get(circuit_breaker or func_name, config.circuit_breaker)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            """Async wrapper for decorated function."""
            breaker = _get_breaker()

            async def attempt() -> Any:
                return await _execute_with_timeout(func, args, kwargs, attempt_timeout)

            if breaker is not None:
                async def guarded() -> Any:
                    return await breaker.execute(attempt)
                operation = guarded
            else:
                operation = attempt

            try:
                return await executor.execute(operation, context=func_name)
            except ResilienceError as e:
                if fallback is None:
                    raise
                logger.warning(f"Using fallback for {func_name} after {type(e).__name__}: {e}")
                return await run_operation(lambda: fallback(*args, **kwargs))

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            """Sync wrapper for decorated function."""
            return asyncio.run(async_wrapper(*args, **kwargs))

        # Return appropriate wrapper based on function type
        if inspect.iscoroutinefunction(func):
            return cast(F, async_wrapper)
        return cast(F, sync_wrapper)

    return decorator
