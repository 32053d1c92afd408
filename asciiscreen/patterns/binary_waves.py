from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import pygame

from asciiscreen.patterns.base import PatternKit
from asciiscreen.patterns.themes import scale_rgb

# Options that change how many waves there are or how they move.
WAVE_KEYS = frozenset({"density", "speed", "degradation_level"})


@dataclass
class Wave:
    amplitude: float
    frequency: float
    phase: float
    speed: float
    horizontal: bool


class BinaryWaves:
    """Sine waves traced in 0s and 1s, thickened with a dithered falloff."""

    def __init__(self, surface: pygame.Surface, config: Optional[Mapping[str, Any]] = None) -> None:
        self.name = "binary-waves"
        self.kit = PatternKit(surface, config)
        self._initialized = False
        self.waves: List[Wave] = []
        self.time = 0.0
        self.grid: List[List[str]] = []

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        self._initialized = True
        self.time = 0.0
        self._build_grid()
        self._build_waves()

    def _build_grid(self) -> None:
        self.grid = [[" "] * self.kit.columns for _ in range(self.kit.rows)]

    def _build_waves(self) -> None:
        kit = self.kit
        density = kit.density_multiplier()
        count = int(3 + density * 5)
        level = kit.degradation_level()
        if level:
            count = max(1, count // (1 + level))
        self.waves = [
            Wave(
                amplitude=kit.random_range(2, 8) * density,
                frequency=kit.random_range(0.02, 0.08),
                phase=kit.random_range(0, math.pi * 2),
                speed=kit.random_range(0.5, 2.0) * kit.speed_multiplier(),
                horizontal=kit.rng.random() > 0.5,
            )
            for _ in range(count)
        ]

    def update(self, delta_ms: float) -> None:
        if not self._initialized:
            return
        self.time += delta_ms * 0.001
        for row in self.grid:
            for x in range(len(row)):
                row[x] = " "
        for index, wave in enumerate(self.waves):
            self._trace(wave, "0" if index % 2 == 0 else "1")

    def _trace(self, wave: Wave, ch: str) -> None:
        columns, rows = self.kit.columns, self.kit.rows
        rng = self.kit.rng
        along, across = (columns, rows) if wave.horizontal else (rows, columns)
        center = across / 2
        thickness = int(wave.amplitude / 4) if wave.amplitude > 4 else 0
        for i in range(along):
            value = math.sin(i * wave.frequency + self.time * wave.speed + wave.phase)
            j = round(center + value * wave.amplitude)
            for dj in range(-thickness, thickness + 1):
                k = j + dj
                if k < 0 or k >= across:
                    continue
                x, y = (i, k) if wave.horizontal else (k, i)
                if dj == 0:
                    self.grid[y][x] = ch
                elif self.grid[y][x] == " ":
                    intensity = 1 - abs(dj) / thickness
                    if rng.chance(intensity * 0.7):
                        self.grid[y][x] = ch

    def render(self) -> None:
        if not self._initialized:
            return
        kit = self.kit
        kit.clear()
        base = kit.theme.base
        for y, row in enumerate(self.grid):
            for x, ch in enumerate(row):
                if ch == " ":
                    continue
                variation = math.sin(x * 0.1 + y * 0.1 + self.time) * 0.3
                kit.draw_char(ch, x, y, scale_rgb(base, 0.7 + variation * 0.3))

    def cleanup(self) -> None:
        self._initialized = False
        self.waves = []
        self.grid = []
        self.time = 0.0

    def on_resize(self, columns: int, rows: int) -> None:
        self.kit.resize(columns, rows)
        if self._initialized:
            self._build_grid()
            for wave in self.waves:
                limit = (rows if wave.horizontal else columns) / 4
                wave.amplitude = min(wave.amplitude, limit)

    def set_config(self, partial: Mapping[str, Any]) -> None:
        self.kit.merge_config(partial)
        if self._initialized and WAVE_KEYS.intersection(partial):
            self._build_waves()

    def get_config(self) -> Dict[str, Any]:
        return self.kit.get_config()

    def set_surface(self, surface: pygame.Surface) -> None:
        self.kit.surface = surface
