"""
trojan.clock — the passage-of-time collaborator.

The governance engine derives its current period from
`(clock.now() - summoning_time) // period_duration`; the only contract is that
`now()` never decreases. Two sources ship here:

- SystemClock: wall time (seconds), for hosts running against real time.
- ManualClock: an explicit, settable clock for simulations and tests.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from .errors import ValidationError


@runtime_checkable
class Clock(Protocol):
    def now(self) -> int:
        """Current UNIX time in whole seconds."""
        ...


class SystemClock:
    """Wall-clock seconds. Never steps backwards within a process."""

    def __init__(self) -> None:
        self._last = 0

    def now(self) -> int:
        t = int(time.time())
        if t < self._last:
            return self._last
        self._last = t
        return t


class ManualClock:
    """
    Deterministic clock advanced explicitly by the caller.

    >>> clock = ManualClock(1_000)
    >>> clock.advance(60)
    1060
    """

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValidationError("clock start must be non-negative", details={"start": start})
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValidationError("clock cannot move backwards", details={"seconds": seconds})
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValidationError(
                "clock cannot move backwards", details={"now": self._now, "timestamp": timestamp}
            )
        self._now = int(timestamp)
        return self._now


__all__ = ["Clock", "SystemClock", "ManualClock"]
