"""
Retry policy: exponential backoff with uniform jitter.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

DEFAULT_RETRY_LIMIT = 5


@dataclass(frozen=True)
class BackoffPolicy:
    """``min(base * 2**(attempt - 1), cap)`` seconds, then +/- ``jitter``."""

    base_seconds: float = 2.0
    cap_seconds: float = 300.0
    jitter: float = 0.2

    def base_delay(self, attempt: int) -> float:
        exponent = max(attempt, 1) - 1
        # Avoid float overflow for absurd attempt counts.
        if exponent > 64:
            return self.cap_seconds
        return min(self.base_seconds * 2**exponent, self.cap_seconds)

    def delay(self, attempt: int, rng: random.Random | None = None) -> float:
        capped = self.base_delay(attempt)
        source = rng or random
        return capped + capped * source.uniform(-self.jitter, self.jitter)

    def to_dict(self) -> dict[str, float]:
        return {
            "base_seconds": self.base_seconds,
            "cap_seconds": self.cap_seconds,
            "jitter": self.jitter,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, float]) -> "BackoffPolicy":
        return cls(
            base_seconds=float(raw.get("base_seconds", 2.0)),
            cap_seconds=float(raw.get("cap_seconds", 300.0)),
            jitter=float(raw.get("jitter", 0.2)),
        )
