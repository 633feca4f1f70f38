"""Reconnect policy and backoff calculation.

Provides the bounded, monotonically non-decreasing backoff used by the
reconnection supervisor.
"""

from dataclasses import dataclass

from lessondeck.config import settings

LINEAR = "linear"
EXPONENTIAL = "exponential"

NORMAL_CLOSURE = 1000
"""Close code of an intentional closure; never followed by a reconnect."""

ABNORMAL_CLOSURE = 1006


@dataclass
class ReconnectPolicy:
    """Configuration for reconnect behaviour.

    Attributes:
        max_attempts: Reconnects tried before the connection is reported lost (default: 3)
        initial_delay_ms: Delay before the first reconnect (default: 2000)
        max_delay_ms: Cap applied to every delay (default: 30000)
        backoff: ``linear`` (initial * attempt) or ``exponential``
            (initial * multiplier ^ (attempt - 1))
        backoff_multiplier: Multiplier for exponential backoff (default: 2.0)

    Example:
        ```python
        policy = ReconnectPolicy(max_attempts=3, initial_delay_ms=2000)

        policy.delay_for(1)  # 2000
        policy.delay_for(2)  # 4000
        policy.delay_for(3)  # 6000
        ```
    """

    max_attempts: int = 3
    initial_delay_ms: int = 2000
    max_delay_ms: int = 30000
    backoff: str = LINEAR
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.initial_delay_ms < 0:
            raise ValueError("initial_delay_ms must be >= 0")
        if self.backoff not in (LINEAR, EXPONENTIAL):
            raise ValueError(f"Unknown backoff strategy: {self.backoff}")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0")

    @classmethod
    def from_settings(cls) -> "ReconnectPolicy":
        """Build the policy from the ``LESSONDECK_*`` environment settings."""
        return cls(
            max_attempts=settings.max_reconnect_attempts,
            initial_delay_ms=settings.reconnect_delay_ms,
            max_delay_ms=settings.reconnect_max_delay_ms,
            backoff=settings.backoff,
        )

    def delay_for(self, attempt: int) -> int:
        return calculate_reconnect_delay(attempt, self)


def calculate_reconnect_delay(attempt: int, policy: ReconnectPolicy) -> int:
    """Calculate the delay in milliseconds before reconnect ``attempt``.

    - linear:      initial_delay_ms * attempt
    - exponential: initial_delay_ms * multiplier ^ (attempt - 1)

    Both are capped at ``max_delay_ms``. No jitter is added, so the sequence
    of delays never decreases.

    Args:
        attempt: 1-based attempt number
        policy: ReconnectPolicy

    Returns:
        Delay in milliseconds
    """
    attempt = max(1, attempt)

    if policy.backoff == EXPONENTIAL:
        delay = policy.initial_delay_ms * (policy.backoff_multiplier ** (attempt - 1))
    else:
        delay = policy.initial_delay_ms * attempt

    return int(min(delay, max(policy.max_delay_ms, policy.initial_delay_ms)))


def is_intentional_close(code: int | None) -> bool:
    return code == NORMAL_CLOSURE
