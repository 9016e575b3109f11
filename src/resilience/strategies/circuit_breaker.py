"""
Circuit breaker that fails fast while a dependency is degraded.

States:
- CLOSED: normal operation, every call invokes the operation
- OPEN: calls are rejected without invoking the operation
- HALF_OPEN: one probe call at a time tests whether the dependency recovered

The reset timeout is evaluated lazily against an injectable clock whenever
the breaker is consulted, so there is no background timer to cancel.

Usage:
    breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=3), name="profile-api")
    profile = await breaker.execute(fetch_profile, fallback=load_cached_profile)
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..classification import ErrorClassifier, ErrorDescriptor
from ..exceptions import CircuitBreakerOpenError
from ..types import (
    CircuitBreakerConfig,
    CircuitState,
    Clock,
    Notifier,
    Operation,
    StateChangeCallback,
)
from .base import RecoveryStrategy, run_operation

logger = logging.getLogger(__name__)


@dataclass
class CircuitBreakerStats:
    """Point-in-time snapshot of a breaker."""

    name: str
    state: CircuitState
    consecutive_failures: int = 0
    half_open_success_count: int = 0
    last_failure_time: Optional[float] = None
    opened_at: Optional[float] = None
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "half_open_success_count": self.half_open_success_count,
            "last_failure_time": self.last_failure_time,
            "opened_at": self.opened_at,
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "rejected_calls": self.rejected_calls,
            "state_changes": self.state_changes,
        }


class CircuitBreaker(RecoveryStrategy):
    """
    Circuit breaker state machine.

    All reads and transitions of the runtime state happen under one lock;
    the wrapped operation runs outside it. Only one probe may be in flight
    while half-open; other calls are rejected until the probe settles.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        name: str = "default",
        classifier: Optional[ErrorClassifier] = None,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Clock] = None,
        on_state_change: Optional[StateChangeCallback] = None,
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(classifier, logger, notifier)
        self.config = config or CircuitBreakerConfig()
        self._name = name
        self.clock = clock or time.monotonic
        self.on_state_change = on_state_change

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._half_open_success_count = 0
        self._last_failure_time: Optional[float] = None
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False
        # Bumped on every transition; results from older generations are ignored
        self._generation = 0

        self._total_calls = 0
        self._successful_calls = 0
        self._failed_calls = 0
        self._rejected_calls = 0
        self._state_changes = 0

        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        return self.get_state()

    @property
    def is_open(self) -> bool:
        return self.get_state() == CircuitState.OPEN

    def get_state(self) -> CircuitState:
        """Current state; an elapsed reset timeout is applied first."""
        with self._lock:
            self._check_state_transition()
            return self._state

    def get_stats(self) -> CircuitBreakerStats:
        with self._lock:
            self._check_state_transition()
            return CircuitBreakerStats(
                name=self._name,
                state=self._state,
                consecutive_failures=self._consecutive_failures,
                half_open_success_count=self._half_open_success_count,
                last_failure_time=self._last_failure_time,
                opened_at=self._opened_at,
                total_calls=self._total_calls,
                successful_calls=self._successful_calls,
                failed_calls=self._failed_calls,
                rejected_calls=self._rejected_calls,
                state_changes=self._state_changes,
            )

    def reset(self) -> None:
        """Force the breaker closed and discard the pending reset timeout."""
        with self._lock:
            self._transition_to(CircuitState.CLOSED)
            self._consecutive_failures = 0
            self._half_open_success_count = 0
            self._opened_at = None
            self._probe_in_flight = False
            self._generation += 1
            self.logger.info(f"Circuit breaker '{self._name}' manually reset")

    def can_recover(self, descriptor: ErrorDescriptor) -> bool:
        return descriptor.retryable and self.get_state() != CircuitState.OPEN

    async def recover(self, descriptor: ErrorDescriptor, operation: Operation) -> Any:
        """Re-run the failed operation through the breaker."""
        return await self.execute(operation)

    async def execute(self, operation: Operation, fallback: Optional[Operation] = None) -> Any:
        """
        Execute ``operation`` through the breaker.

        Args:
            operation: Zero-argument callable, sync or async
            fallback: Used when the call is rejected, or when its failure opens the circuit

        Returns:
            Result of the operation, or of the fallback

        Raises:
            CircuitBreakerOpenError: Rejected without a fallback
            ResilienceError: Classified error of the operation's failure
        """
        allowed, is_probe, generation = self._acquire()

        if not allowed:
            error = CircuitBreakerOpenError(self._name, self._retry_after())
            if fallback is not None:
                self.logger.warning(f"Circuit breaker '{self._name}' is open, using fallback")
                return await run_operation(fallback)
            self.logger.warning(f"Circuit breaker '{self._name}' rejected call")
            self._notify(error)
            raise error

        try:
            result = await run_operation(operation)
        except Exception as failure:
            descriptor = self.classifier.classify(failure)
            error = self.classifier.to_error(failure, descriptor)
            opened = self._record_failure(descriptor, is_probe, generation)

            if opened and fallback is not None:
                self.logger.warning(f"Circuit breaker '{self._name}' opened, using fallback")
                return await run_operation(fallback)

            if error is failure:
                raise
            raise error from failure
        except BaseException:
            # Cancelled mid-probe: free the slot without judging the dependency
            self._release_probe(is_probe, generation)
            raise

        self._record_success(is_probe, generation)
        return result

    def _acquire(self) -> Tuple[bool, bool, int]:
        """Decide whether a call may proceed. Returns (allowed, is_probe, generation)."""
        with self._lock:
            self._total_calls += 1
            self._check_state_transition()

            if self._state == CircuitState.CLOSED:
                return True, False, self._generation

            if self._state == CircuitState.HALF_OPEN and not self._probe_in_flight:
                self._probe_in_flight = True
                self.logger.debug(f"Circuit breaker '{self._name}' admitting probe")
                return True, True, self._generation

            self._rejected_calls += 1
            return False, False, self._generation

    def _release_probe(self, is_probe: bool, generation: int) -> None:
        if not is_probe:
            return
        with self._lock:
            if generation == self._generation:
                self._probe_in_flight = False

    def _record_success(self, is_probe: bool, generation: int) -> None:
        with self._lock:
            self._successful_calls += 1

            if generation != self._generation:
                # Admitted under an earlier state; says nothing about this one
                return

            if is_probe:
                self._probe_in_flight = False
                self._half_open_success_count += 1
                if self._half_open_success_count >= self.config.half_open_max_attempts:
                    self._transition_to(CircuitState.CLOSED)
                return

            self._consecutive_failures = 0

    def _record_failure(self, descriptor: ErrorDescriptor, is_probe: bool, generation: int) -> bool:
        """Record a failed call. Returns True if this failure opened the circuit."""
        with self._lock:
            self._failed_calls += 1
            self._last_failure_time = self.clock()

            if generation != self._generation:
                # Late result of a call admitted before the last transition
                return False

            if is_probe:
                self._probe_in_flight = False
                self.logger.debug(
                    f"Circuit breaker '{self._name}' probe failed ({descriptor.category.value}), reopening"
                )
                self._transition_to(CircuitState.OPEN)
                return True

            self._consecutive_failures += 1
            self.logger.debug(
                f"Circuit breaker '{self._name}' recorded failure "
                f"{self._consecutive_failures}/{self.config.failure_threshold} "
                f"({descriptor.category.value})"
            )
            if self._consecutive_failures >= self.config.failure_threshold:
                self._consecutive_failures = self.config.failure_threshold
                self._transition_to(CircuitState.OPEN)
                return True
            return False

    def _check_state_transition(self) -> None:
        """Move OPEN to HALF_OPEN once the reset timeout has elapsed (under lock)."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return
        elapsed = self.clock() - self._opened_at
        if elapsed >= self.config.reset_timeout:
            self._transition_to(CircuitState.HALF_OPEN)

    def _retry_after(self) -> float:
        with self._lock:
            if self._state != CircuitState.OPEN or self._opened_at is None:
                return 0.0
            elapsed = self.clock() - self._opened_at
            return max(0.0, self.config.reset_timeout - elapsed)

    def _transition_to(self, new_state: CircuitState) -> None:
        """Transition to a new state (under lock)."""
        old_state = self._state
        if old_state == new_state:
            return

        self._state = new_state
        self._state_changes += 1
        self._generation += 1
        self._probe_in_flight = False

        if new_state == CircuitState.CLOSED:
            self._consecutive_failures = 0
            self._half_open_success_count = 0
            self._opened_at = None
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_success_count = 0
        elif new_state == CircuitState.OPEN:
            # Starts, or restarts, the single reset timeout
            self._opened_at = self.clock()
            self._half_open_success_count = 0

        self.logger.info(
            f"Circuit breaker '{self._name}' state transition: "
            f"{old_state.value} -> {new_state.value} (failures={self._consecutive_failures})"
        )

        if self.on_state_change:
            try:
                self.on_state_change(old_state, new_state)
            except Exception as e:
                self.logger.warning(f"Error in circuit state change callback for '{self._name}': {e}")


class CircuitBreakerRegistry:
    """Named breakers shared between call sites."""

    def __init__(self):
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        **kwargs: Any,
    ) -> CircuitBreaker:
        """Get or create a breaker. ``config`` only applies on first creation."""
        with self._lock:
            if name not in self._breakers:
                self._breakers[name] = CircuitBreaker(config, name=name, **kwargs)
                logger.debug(f"Created circuit breaker '{name}'")
            return self._breakers[name]

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()

    def clear(self) -> None:
        with self._lock:
            self._breakers.clear()

    def snapshot(self) -> Dict[str, CircuitBreakerStats]:
        with self._lock:
            breakers = dict(self._breakers)
        return {name: breaker.get_stats() for name, breaker in breakers.items()}

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._breakers

    def __len__(self) -> int:
        with self._lock:
            return len(self._breakers)


default_registry = CircuitBreakerRegistry()


def get_circuit_breaker(name: str, config: Optional[CircuitBreakerConfig] = None) -> CircuitBreaker:
    """Get or create a named breaker in the default registry."""
    return default_registry.get(name, config)
