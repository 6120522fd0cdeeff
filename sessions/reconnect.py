"""
Reconnect policy.

Bounded retries with exponential backoff. Attempt 1 is immediate so a
routine restart (e.g. right after pairing) costs nothing.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ReconnectPolicy:
    """
    max_attempts: consecutive attempts allowed; 0 means unbounded
    base_delay_s: delay before attempt 2, doubled per further attempt
    max_delay_s:  ceiling for any single delay
    """

    max_attempts: int = 5
    base_delay_s: float = 1.0
    max_delay_s: float = 30.0
    factor: float = 2.0

    def allows(self, attempt: int) -> bool:
        return self.max_attempts <= 0 or attempt <= self.max_attempts

    def delay_for(self, attempt: int) -> float:
        if attempt <= 1:
            return 0.0
        return min(self.max_delay_s, self.base_delay_s * self.factor ** (attempt - 2))
