"""Backoff policies: how long to wait between attempts."""

from __future__ import annotations

import math
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional, Union


class Backoffer(ABC):
    """Calculates how long to wait between attempts."""

    @abstractmethod
    def backoff(self, attempt: int) -> float:
        """Return the delay in seconds to wait after ``attempt``.

        Args:
            attempt: The attempt which just completed, starting at 1. So
                ``attempt=1`` is the wait between attempts 1 and 2.

        Returns:
            Non-negative delay in seconds
        """


class BackofferFunc(Backoffer):
    """Adapts a plain function to the Backoffer interface."""

    def __init__(self, fn: Callable[[int], float]):
        self._fn = fn

    def backoff(self, attempt: int) -> float:
        return self._fn(attempt)

    def __call__(self, attempt: int) -> float:
        return self.backoff(attempt)


@dataclass(frozen=True)
class ExponentialBackoff(Backoffer):
    """Exponential backoff with jitter, modelled on gRPC's connection backoff.

    The zero value is a zero backoff: no delay between retries.

    Attributes:
        base_delay: Seconds to wait after the first failure
        multiplier: Growth factor per attempt. 0 or less means a fixed delay
        jitter: Randomization factor; the delay is scaled by a random factor in
            ``[1 - jitter, 1 + jitter]``. Jitter that would push the delay over
            ``max_delay`` is reflected below it. 0 means no jitter
        max_delay: Upper bound on the delay. 0 means no bound
        rng: Source of uniform floats in ``[0, 1)``
    """

    base_delay: float = 0.0
    multiplier: float = 0.0
    jitter: float = 0.0
    max_delay: float = 0.0
    rng: Callable[[], float] = field(default=random.random, repr=False, compare=False)

    def backoff(self, attempt: int) -> float:
        delay = float(self.base_delay)

        if self.multiplier > 0:
            try:
                delay *= float(self.multiplier) ** (attempt - 1)
            except OverflowError:
                delay = math.inf if delay > 0 else 0.0

        if self.max_delay > 0:
            delay = min(delay, self.max_delay)

        delay = max(0.0, delay)

        if self.jitter > 0 and delay > 0:
            delay *= 1 + self.jitter * (self.rng() * 2 - 1)
            if self.max_delay > 0:
                excess = delay - self.max_delay
                if excess > 0:
                    delay = self.max_delay - excess

        return max(0.0, delay)


def no_backoff() -> ExponentialBackoff:
    """No delay between retries."""
    return ExponentialBackoff()


def constant_backoff(delay: float) -> ExponentialBackoff:
    """Fixed delay between retries, no jitter."""
    return ExponentialBackoff(base_delay=delay)


def constant_backoff_with_jitter(delay: float) -> ExponentialBackoff:
    """Fixed delay between retries with 20% jitter."""
    return ExponentialBackoff(base_delay=delay, jitter=0.2)


def default_backoff() -> ExponentialBackoff:
    """First delay 1s, growing 1.6x per attempt, +/-20% jitter, capped at 120s."""
    return ExponentialBackoff(base_delay=1.0, multiplier=1.6, jitter=0.2, max_delay=120.0)


def as_backoffer(value: Union[Backoffer, Callable[[int], float], None]) -> Optional[Backoffer]:
    """Accept a Backoffer, a bare function, or None."""
    if value is None or isinstance(value, Backoffer):
        return value
    if callable(value):
        return BackofferFunc(value)
    raise TypeError(f"expected a Backoffer or callable, got {type(value).__name__}")
