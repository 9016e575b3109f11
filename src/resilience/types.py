"""
Shared type definitions for the resilience system.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, TypeVar, Union


# Type variables
T = TypeVar('T')
F = TypeVar('F', bound=Callable[..., Any])

# A zero-argument callable; may return a value or an awaitable of one.
Operation = Callable[[], Union[Awaitable[T], T]]
Sleeper = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class ErrorCategory(Enum):
    """Categories for classifying failures."""
    NETWORK = "network"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    BUSINESS_LOGIC = "business_logic"
    SYSTEM = "system"
    EXTERNAL_SERVICE = "external_service"
    DATABASE = "database"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for failures."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CircuitState(Enum):
    """States of a circuit breaker."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Rejecting calls
    HALF_OPEN = "half_open"  # Probing for recovery


class RandomSource(Protocol):
    """Source of jitter values."""

    def uniform(self, a: float, b: float) -> float:
        """Return a float drawn uniformly from [a, b]."""
        ...


class Notifier(Protocol):
    """Surfaces terminal failures and circuit rejections to users."""

    def notify(self, error: Exception) -> None:
        ...


StateChangeCallback = Callable[[CircuitState, CircuitState], None]


@dataclass
class RetryPolicy:
    """Configuration for retry behavior.

    Delays are in seconds.
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_ratio: float = 0.1

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.max_delay < self.initial_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay})"
            )
        if self.backoff_multiplier < 1:
            raise ValueError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            )
        if not 0.0 <= self.jitter_ratio <= 1.0:
            raise ValueError(f"jitter_ratio must be within [0, 1], got {self.jitter_ratio}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RetryPolicy':
        """Create from dictionary, ignoring unknown keys."""
        known = {key: data[key] for key in cls.__dataclass_fields__ if key in data}
        return cls(**known)

    def to_dict(self) -> dict:
        return {
            "max_attempts": self.max_attempts,
            "initial_delay": self.initial_delay,
            "max_delay": self.max_delay,
            "backoff_multiplier": self.backoff_multiplier,
            "jitter_ratio": self.jitter_ratio,
        }


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""

    # Consecutive failures before opening the circuit
    failure_threshold: int = 5

    # Seconds to stay open before admitting a probe
    reset_timeout: float = 60.0

    # Consecutive probe successes needed to close again
    half_open_max_attempts: int = 3

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError(
                f"failure_threshold must be >= 1, got {self.failure_threshold}"
            )
        if self.reset_timeout < 0:
            raise ValueError(f"reset_timeout must be >= 0, got {self.reset_timeout}")
        if self.half_open_max_attempts < 1:
            raise ValueError(
                f"half_open_max_attempts must be >= 1, got {self.half_open_max_attempts}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CircuitBreakerConfig':
        """Create from dictionary, ignoring unknown keys."""
        known = {key: data[key] for key in cls.__dataclass_fields__ if key in data}
        return cls(**known)

    def to_dict(self) -> dict:
        return {
            "failure_threshold": self.failure_threshold,
            "reset_timeout": self.reset_timeout,
            "half_open_max_attempts": self.half_open_max_attempts,
        }


@dataclass
class ResilienceConfig:
    """Groups the policies applied to a single call site."""
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    circuit_breaker: Optional[CircuitBreakerConfig] = None
    # Per-attempt timeout in seconds
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResilienceConfig':
        """Create from a nested dictionary."""
        breaker = data.get("circuit_breaker")
        return cls(
            retry=RetryPolicy.from_dict(data.get("retry") or {}),
            circuit_breaker=CircuitBreakerConfig.from_dict(breaker) if breaker is not None else None,
            timeout=data.get("timeout"),
        )
