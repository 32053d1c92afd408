from __future__ import annotations

"""
Tick sources: who calls the engine once per frame.

The engine never owns a loop. It hands a callback to a tick source and asks
it for the current time in ms; ClockTickSource is pumped by the host's frame
loop, ManualTickSource is stepped by tests.
"""

from typing import Callable, Optional, Protocol, runtime_checkable

import pygame

TickCallback = Callable[[float], None]  # receives now() in ms


@runtime_checkable
class TickSource(Protocol):
    @property
    def running(self) -> bool: ...

    def start(self, callback: TickCallback) -> None: ...

    def stop(self) -> None: ...

    def now(self) -> float: ...


class ClockTickSource:
    """pygame.time.Clock driven source; call pump() once per host frame."""

    def __init__(self, fps: int = 60) -> None:
        self.fps = fps
        self.clock = pygame.time.Clock()
        self._callback: Optional[TickCallback] = None

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    def now(self) -> float:
        return float(pygame.time.get_ticks())

    def pump(self) -> int:
        """Wait for the next frame, then tick. Returns the clock's dt in ms."""
        dt = self.clock.tick(self.fps)
        if self._callback is not None:
            self._callback(self.now())
        return dt


class ManualTickSource:
    """Deterministic clock for tests; nothing happens until advance()."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._callback: Optional[TickCallback] = None

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    def now(self) -> float:
        return self._now

    def advance(self, ms: float, step: Optional[float] = None) -> None:
        """Move the clock by ms, firing one tick per step (one tick total by default)."""
        step = ms if step is None or step <= 0 else step
        remaining = float(ms)
        while remaining > 1e-9:
            chunk = min(step, remaining)
            self._now += chunk
            remaining -= chunk
            if self._callback is not None:
                self._callback(self._now)
