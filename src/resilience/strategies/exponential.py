"""
Exponential backoff with symmetric jitter.
"""
import random
from typing import Optional

from ..types import RandomSource, RetryPolicy


def compute_backoff_delay(policy: RetryPolicy, attempt: int, rng: RandomSource) -> float:
    """Delay to wait after failed ``attempt`` (1-indexed).

    raw = min(initial_delay * backoff_multiplier ** (attempt - 1), max_delay)
    delay = max(0, raw + raw * jitter_ratio * uniform(-1, 1))
    """
    if policy.initial_delay == 0:
        return 0.0
    try:
        raw = min(
            policy.initial_delay * (policy.backoff_multiplier ** (attempt - 1)),
            policy.max_delay,
        )
    except OverflowError:
        # The growth term no longer fits in a float; it is past the cap anyway
        raw = policy.max_delay
    if policy.jitter_ratio == 0 or raw == 0:
        return raw
    jitter = raw * policy.jitter_ratio * rng.uniform(-1.0, 1.0)
    return max(0.0, raw + jitter)


class ExponentialBackoff:
    """
    Exponential backoff schedule for a retry policy.

    The random source is injectable so tests can pin the jitter.
    """

    def __init__(self, policy: RetryPolicy, rng: Optional[RandomSource] = None):
        self.policy = policy
        self.rng = rng or random.Random()

    def calculate_delay(self, attempt: int) -> float:
        """Calculate the delay before the attempt following ``attempt``."""
        return compute_backoff_delay(self.policy, attempt, self.rng)

    @property
    def upper_bound(self) -> float:
        """Largest delay this schedule can produce."""
        return self.policy.max_delay * (1 + self.policy.jitter_ratio)

    @property
    def name(self) -> str:
        return (
            f"ExponentialBackoff(initial={self.policy.initial_delay}, "
            f"factor={self.policy.backoff_multiplier}, jitter={self.policy.jitter_ratio})"
        )
