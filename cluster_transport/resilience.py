from typing import Optional

from .config import BackoffConfig


class ExponentialBackoff:
    """
    Revival delay for a dead connection, growing with its consecutive failures.
    """
    def __init__(
        self,
        initial_delay: float = 60.0,
        max_delay: float = 3600.0,
        backoff_factor: float = 2.0,
    ):
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor

    @classmethod
    def from_config(cls, config: BackoffConfig) -> "ExponentialBackoff":
        return cls(
            initial_delay=config.dead_timeout,
            max_delay=config.max_dead_timeout,
            backoff_factor=config.backoff_factor,
        )

    def delay(self, failure_count: int) -> float:
        """Seconds a connection with ``failure_count`` failures stays ineligible."""
        if failure_count <= 0:
            return 0.0
        exponent = min(failure_count - 1, 64)
        wait = self.initial_delay * (self.backoff_factor ** exponent)
        # Cap at max_delay
        return min(wait, self.max_delay)

    def is_eligible(self, failure_count: int, last_failure: Optional[float], now: float) -> bool:
        if last_failure is None:
            return True
        return now - last_failure >= self.delay(failure_count)
