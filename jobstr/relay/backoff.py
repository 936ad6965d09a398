# jobstr/relay/backoff.py
# SPDX-License-Identifier: Apache-2.0
"""
Reconnect delays for relay links: exponential growth with full jitter.

    delay(n) = uniform(0, min(cap, base * factor ** n))
"""

from __future__ import annotations

import random
from typing import Callable, Optional


class Backoff:
    # Exponent stops growing once base * factor ** n passes the cap
    MAX_EXPONENT = 32

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        factor: float = 2.0,
        rand: Optional[Callable[[float, float], float]] = None,
    ):
        """
        Args:
            base_delay: Upper bound of the first delay in seconds
            max_delay: Ceiling for any single delay
            factor: Growth per consecutive failure
            rand: uniform(lo, hi) source; injectable for tests
        """
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.factor = factor
        self._rand = rand or random.uniform
        self.attempts = 0

    def ceiling(self, attempt: int) -> float:
        exp = min(attempt, self.MAX_EXPONENT)
        return min(self.max_delay, self.base_delay * (self.factor ** exp))

    def next_delay(self) -> float:
        """Delay before the next attempt; bumps the failure count."""
        delay = self._rand(0.0, self.ceiling(self.attempts))
        self.attempts += 1
        return delay

    def reset(self) -> None:
        self.attempts = 0
