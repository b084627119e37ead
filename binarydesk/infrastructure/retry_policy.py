"""
BinaryDesk – Retry Policy
==========================
Política de reconexión del feed, desacoplada del motor de liquidación.

    delay(n) = min(base × factor^n, max_delay) + uniform(0, delay × jitter)

Con factor=1.0 y jitter=0.0 (defaults) es un backoff fijo de `base` seg.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional

from binarydesk.core.settings import Settings


@dataclass(frozen=True)
class RetryPolicy:
    base_delay: float = 2.0
    max_delay: float = 30.0
    factor: float = 1.0
    jitter: float = 0.0
    max_attempts: Optional[int] = None   # None = reintentar siempre
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            base_delay=settings.reconnect_base_delay,
            max_delay=settings.reconnect_max_delay,
            factor=settings.reconnect_backoff_factor,
            jitter=settings.reconnect_jitter,
        )

    def delay(self, attempt: int) -> float:
        """Segundos a esperar antes del reintento número `attempt` (0-based)."""
        delay = min(self.base_delay * (self.factor ** attempt), self.max_delay)
        if self.jitter > 0:
            delay += self.rng.uniform(0, delay * self.jitter)
        return delay

    def should_retry(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt < self.max_attempts
