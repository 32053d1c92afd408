from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import pygame

from asciiscreen.patterns.base import PatternKit
from asciiscreen.render.glyphs import fade_rgb

MATRIX_CHARACTERS = "01{}[]()<>/*+-=;:.,!@#$%^&*"

BASE_SPEEDS = {"slow": 30.0, "medium": 50.0, "fast": 80.0}  # cells per second
SPAWN_PROBABILITIES = {"low": 0.01, "medium": 0.02, "high": 0.04}
GLITCH_INTERVAL_MS = 2000.0


@dataclass
class RainColumn:
    x: int
    y: float
    speed: float
    length: int
    characters: List[str] = field(default_factory=list)


class MatrixRain:
    """Falling glyph columns: bright head, theme-colored fading tail."""

    min_length = 5
    max_length = 25

    def __init__(self, surface: pygame.Surface, config: Optional[Mapping[str, Any]] = None) -> None:
        self.name = "matrix-rain"
        defaults = {"characters": MATRIX_CHARACTERS}
        self.kit = PatternKit(surface, config, defaults=defaults)
        self._initialized = False
        self.columns: List[RainColumn] = []
        self.glitch_timer = 0.0
        self.base_speed = BASE_SPEEDS.get(self.kit.config.get("speed"), 50.0)
        self.spawn_probability = SPAWN_PROBABILITIES.get(self.kit.config.get("density"), 0.02)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        self._initialized = True
        self.columns = []
        self.glitch_timer = 0.0
        for x in range(self.kit.columns):
            if self.kit.rng.chance(0.3):
                self._spawn_column(x)

    def _spawn_column(self, x: int) -> None:
        kit = self.kit
        length = kit.random_int(self.min_length, self.max_length)
        speed = self.base_speed * kit.speed_multiplier() * kit.random_range(0.5, 2.0)
        column = RainColumn(x=x, y=float(-length), speed=speed, length=length)
        column.characters = [kit.random_char() for _ in range(length)]
        self.columns.append(column)

    def update(self, delta_ms: float) -> None:
        if not self._initialized:
            return
        kit = self.kit
        self.glitch_timer += delta_ms
        glitching = self.glitch_timer > GLITCH_INTERVAL_MS
        glitch_probability = float(kit.config.get("glitch_probability") or 0.02)

        survivors: List[RainColumn] = []
        for column in self.columns:
            column.y += column.speed * delta_ms / 1000.0
            if glitching:
                for i in range(column.length):
                    if kit.rng.chance(glitch_probability):
                        column.characters[i] = kit.random_char()
            if column.y <= kit.rows + column.length:
                survivors.append(column)
        self.columns = survivors
        if glitching:
            self.glitch_timer = 0.0

        spawn_rate = self.spawn_probability * kit.density_multiplier() / (1 + kit.degradation_level())
        if kit.columns and kit.rng.chance(spawn_rate):
            x = kit.random_int(0, kit.columns - 1)
            occupied = any(col.x == x and col.y < kit.rows / 2 for col in self.columns)
            if not occupied:
                self._spawn_column(x)

    def render(self) -> None:
        if not self._initialized:
            return
        kit = self.kit
        kit.clear()
        theme = kit.theme
        bg = kit.background
        for column in self.columns:
            for i, ch in enumerate(column.characters):
                # characters[0] is the head, drawn lowest
                y = int(column.y) + column.length - 1 - i
                if y < 0 or y >= kit.rows:
                    continue
                opacity = (column.length - i) / column.length
                if i == 0:
                    color = theme.accent
                elif i < 3:
                    color = fade_rgb(theme.base, opacity, bg)
                else:
                    color = fade_rgb(theme.base, opacity * 0.7, bg)
                kit.draw_char(ch, column.x, y, color)

    def cleanup(self) -> None:
        self._initialized = False
        self.columns = []
        self.glitch_timer = 0.0

    def on_resize(self, columns: int, rows: int) -> None:
        self.kit.resize(columns, rows)
        self.columns = [c for c in self.columns if c.x < columns]

    def set_config(self, partial: Mapping[str, Any]) -> None:
        self.kit.merge_config(partial)
        if "speed" in partial:
            self.base_speed = BASE_SPEEDS.get(partial["speed"], self.base_speed)
        if "density" in partial:
            self.spawn_probability = SPAWN_PROBABILITIES.get(partial["density"], self.spawn_probability)

    def get_config(self) -> Dict[str, Any]:
        return self.kit.get_config()

    def set_surface(self, surface: pygame.Surface) -> None:
        self.kit.surface = surface

    def get_animation_state(self) -> Dict[str, Any]:
        return {
            "column_count": len(self.columns),
            "glitch_timer": self.glitch_timer,
            "base_speed": self.base_speed,
            "spawn_probability": self.spawn_probability,
        }
