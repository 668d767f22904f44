from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Exponential backoff with a ceiling and an attempt budget.

    Attempt n (1-based) waits base_delay * 2**(n-1), capped at max_delay.
    After max_attempts failures the event is declared stuck.
    """

    base_delay: timedelta
    max_delay: timedelta
    max_attempts: int

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if self.base_delay < timedelta(0) or self.max_delay < timedelta(0):
            raise ValueError("delays must be non-negative")

    @classmethod
    def from_millis(cls, *, base_delay_ms: int, max_delay_ms: int, max_attempts: int) -> "BackoffPolicy":
        return cls(
            base_delay=timedelta(milliseconds=base_delay_ms),
            max_delay=timedelta(milliseconds=max_delay_ms),
            max_attempts=max_attempts,
        )

    def delay_for(self, attempts: int) -> timedelta:
        if attempts <= 0:
            return timedelta(0)
        # work in milliseconds: timedelta * 2**n overflows long before the cap applies
        base_ms = self.base_delay / timedelta(milliseconds=1)
        max_ms = self.max_delay / timedelta(milliseconds=1)
        delay_ms = min(base_ms * 2 ** min(attempts - 1, 64), max_ms)
        return timedelta(milliseconds=delay_ms)

    def next_attempt_at(self, attempts: int, now: datetime) -> datetime:
        return now + self.delay_for(attempts)

    def is_exhausted(self, attempts: int) -> bool:
        return attempts >= self.max_attempts
