"""
Retry-with-backoff as a small explicit state machine.

``RetryPolicy`` is the immutable configuration, ``RetryState`` tracks one
operation's attempts. Callers drive the loop themselves:

    state = policy.start()
    while state.begin_attempt():
        try:
            return await op()
        except Exception:
            if state.exhausted:
                raise
            await asyncio.sleep(state.next_delay())
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    max_attempts: int = 1
    base_delay: float = 0.5  # seconds
    max_delay: float = 5.0
    jitter: float = 0.0  # added random [0, jitter) seconds
    use_exponential_backoff: bool = True

    @classmethod
    def from_retries(cls, retries: int, **kwargs) -> "RetryPolicy":
        """Build a policy from a retry count (attempts = retries + 1)."""
        return cls(max_attempts=max(0, int(retries)) + 1, **kwargs)

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        base = max(0.0, float(self.base_delay))
        if self.use_exponential_backoff:
            delay = base * (2 ** max(0, attempt - 1))
        else:
            delay = base
        delay = min(float(self.max_delay), delay)
        if self.jitter > 0:
            delay += random.uniform(0.0, float(self.jitter))
        return delay

    def start(self) -> "RetryState":
        return RetryState(policy=self)


@dataclass(slots=True)
class RetryState:
    policy: RetryPolicy
    attempt: int = 0
    delays: List[float] = field(default_factory=list)

    def begin_attempt(self) -> bool:
        """Advance to the next attempt; False once the budget is spent."""
        if self.attempt >= max(1, self.policy.max_attempts):
            return False
        self.attempt += 1
        return True

    @property
    def exhausted(self) -> bool:
        return self.attempt >= max(1, self.policy.max_attempts)

    def next_delay(self) -> float:
        delay = self.policy.delay_for(self.attempt)
        self.delays.append(delay)
        return delay
