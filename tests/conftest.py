"""Pytest configuration and shared fixtures for asciiscreen tests."""

from __future__ import annotations

import os
from collections import Counter
from typing import Any, Callable, Dict, List, Mapping, Optional

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pygame
import pytest

from asciiscreen.config import EngineConfig
from asciiscreen.engine import Engine
from asciiscreen.performance import PerformanceConfig, PerformanceMonitor
from asciiscreen.rng import new_rng
from asciiscreen.scheduler import ManualTickSource

SURFACE_SIZE = (320, 240)


class RecordingPattern:
    """Pattern double that counts every lifecycle call it receives."""

    def __init__(
        self,
        surface: pygame.Surface,
        config: Optional[Mapping[str, Any]] = None,
        *,
        fail_initialize: bool = False,
        color=(0, 200, 0),
    ) -> None:
        self.name = "recording"
        self.surface = surface
        self.config: Dict[str, Any] = dict(config or {})
        self.fail_initialize = fail_initialize
        self.color = color
        self.calls: Counter = Counter()
        self.config_updates: List[Dict[str, Any]] = []
        self.size = (0, 0)
        self.elapsed = 0.0
        self.on_update: Optional[Callable[[float], None]] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        self.calls["initialize"] += 1
        if self.fail_initialize:
            raise RuntimeError("initialize failed")
        self._initialized = True

    def update(self, delta_ms: float) -> None:
        self.calls["update"] += 1
        if not self._initialized:
            return
        self.elapsed += delta_ms
        if self.on_update is not None:
            self.on_update(delta_ms)

    def render(self) -> None:
        self.calls["render"] += 1
        if self._initialized:
            self.surface.fill(self.color, pygame.Rect(0, 0, 16, 16))

    def cleanup(self) -> None:
        self.calls["cleanup"] += 1
        self._initialized = False

    def on_resize(self, columns: int, rows: int) -> None:
        self.calls["on_resize"] += 1
        self.size = (columns, rows)

    def set_config(self, partial: Mapping[str, Any]) -> None:
        self.config.update(partial)
        self.config_updates.append(dict(partial))

    def get_config(self) -> Dict[str, Any]:
        return dict(self.config)

    def set_surface(self, surface: pygame.Surface) -> None:
        self.surface = surface


class PatternRecorder:
    """Hands out factories and remembers every instance they built."""

    def __init__(self) -> None:
        self.instances: List[RecordingPattern] = []

    def factory(self, **kwargs: Any) -> Callable[..., RecordingPattern]:
        def make(surface: pygame.Surface, config: Optional[Mapping[str, Any]] = None) -> RecordingPattern:
            pattern = RecordingPattern(surface, config, **kwargs)
            self.instances.append(pattern)
            return pattern

        return make

    def failing(self, exc: Exception) -> Callable[..., RecordingPattern]:
        def make(surface: pygame.Surface, config: Optional[Mapping[str, Any]] = None) -> RecordingPattern:
            raise exc

        return make


@pytest.fixture(scope="session", autouse=True)
def _pygame_fonts():
    pygame.font.init()
    yield
    pygame.font.quit()


@pytest.fixture
def surface() -> pygame.Surface:
    return pygame.Surface(SURFACE_SIZE)


@pytest.fixture
def ticks() -> ManualTickSource:
    return ManualTickSource()


@pytest.fixture
def monitor() -> PerformanceMonitor:
    return PerformanceMonitor(PerformanceConfig(), memory_reader=lambda: 10.0)


@pytest.fixture
def engine(surface, ticks, monitor):
    eng = Engine(surface, EngineConfig(), tick_source=ticks, monitor=monitor, rng=new_rng(1234))
    yield eng
    eng.cleanup()


@pytest.fixture
def recorder() -> PatternRecorder:
    return PatternRecorder()
