from __future__ import annotations
import random
from dataclasses import dataclass
from typing import Callable, Optional, Union

from anthropic_lite.core.errors import ClassifiedError, NEVER_RETRY_KINDS

MAX_RETRIES_LIMIT = 10
BASE_DELAY = 1.0
JITTER_CEILING = 1.0
CAP_DELAY = 30.0


@dataclass(frozen=True)
class Retry:
    delay: float


@dataclass(frozen=True)
class Stop:
    reason: str = ""


RetryDecision = Union[Retry, Stop]


def backoff(attempt: int, *, base: float = BASE_DELAY, cap: float = CAP_DELAY,
            jitter: float = JITTER_CEILING, rand: Callable[[], float] = random.random) -> float:
    # random() is in [0, 1), so the jitter never reaches its ceiling
    return min(cap, base * (2 ** attempt)) + rand() * jitter


def decide(attempt: int, classified: ClassifiedError, max_retries: int,
           delay_for: Optional[Callable[[int], float]] = None) -> RetryDecision:
    """
    Decide what to do after a failed attempt. `attempt` counts retries from 0.
    Stops once `max_retries` retries were spent, or when the error is not retryable.
    """
    if attempt >= max_retries:
        return Stop("retries exhausted")
    if classified.kind in NEVER_RETRY_KINDS or not classified.retryable:
        return Stop(f"{classified.kind.value} is not retryable")
    return Retry((delay_for or backoff)(attempt))


class ResiliencePolicy:
    """
    Exponential backoff with additive jitter:
        delay = min(max_delay, base_delay * 2**attempt) + U[0, jitter)
    The first retry waits ~1-2s with the defaults. Holds no per-call state.
    """

    def __init__(self, max_retries=3, base_delay=BASE_DELAY, max_delay=CAP_DELAY, jitter=JITTER_CEILING,
                 rand: Callable[[], float] = random.random):
        if not 0 <= int(max_retries) <= MAX_RETRIES_LIMIT:
            raise ValueError(f"max_retries must be between 0 and {MAX_RETRIES_LIMIT}")
        if base_delay < 0 or max_delay < 0 or jitter < 0:
            raise ValueError("delays must be non-negative")
        self.max_retries = int(max_retries)
        self.base_delay = float(base_delay)
        self.max_delay = float(max_delay)
        self.jitter = float(jitter)
        self._rand = rand

    def compute_backoff(self, attempt: int) -> float:
        return backoff(attempt, base=self.base_delay, cap=self.max_delay, jitter=self.jitter, rand=self._rand)

    def decide(self, attempt: int, classified: ClassifiedError) -> RetryDecision:
        return decide(attempt, classified, self.max_retries, self.compute_backoff)
