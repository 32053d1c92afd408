from __future__ import annotations

"""
Mandelbrot set drawn with density glyphs.

The view zooms in and out between MIN_ZOOM and MAX_ZOOM and hops to the next
preset point of interest on a timer. Escape counts are cached per cell and
only recomputed when the view moved enough to matter; colours cycle every
frame without recomputing.
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pygame

from asciiscreen.patterns.base import PatternKit
from asciiscreen.patterns.themes import Color, clamp_u8, get_theme

# (center_x, center_y, zoom)
PRESET_POINTS: List[Tuple[float, float, float]] = [
    (-0.5, 0.0, 1.0),  # main bulb
    (-0.75, 0.0, 5.0),
    (-0.1, 0.8, 10.0),
    (-0.7269, 0.1889, 50.0),  # seahorse valley
    (0.3, 0.5, 20.0),
    (-0.8, 0.156, 80.0),
    (-0.16, 1.04, 30.0),
]

# complexity -> (max iterations, glyphs light to dark)
COMPLEXITY_STYLES: Dict[str, Tuple[int, str]] = {
    "low": (25, " .:@"),
    "medium": (50, " .,:;ox%#@"),
    "high": (100, " .'\",:;il!i><~+_-?][}{1)(|/tfjrxnuvczXYUJCLQ0OZmwqpdbkhao*#MW&8%B@$"),
}

# speed -> (zoom rate per second, colour cycle per ms, ms per preset point)
SPEED_STYLES: Dict[str, Tuple[float, float, float]] = {
    "slow": (0.01, 0.0005, 15000.0),
    "medium": (0.02, 0.001, 10000.0),
    "fast": (0.04, 0.002, 5000.0),
}

MIN_ZOOM = 0.5
MAX_ZOOM = 100.0
RECALC_RATIO = 0.05


def escape_iterations(x0: float, y0: float, limit: int) -> int:
    """Iterations of z -> z*z + c before |z| > 2, capped at limit."""
    x = y = 0.0
    n = 0
    while x * x + y * y <= 4.0 and n < limit:
        x, y = x * x - y * y + x0, 2.0 * x * y + y0
        n += 1
    return n


def gradient_color(theme_name: Optional[str], ratio: float, cycle: float) -> Color:
    wave = math.sin(cycle * math.pi * 2)
    theme = get_theme(theme_name).name
    if theme == "matrix":
        return (0, clamp_u8(255 * (0.3 + 0.7 * wave)), 0)
    if theme == "terminal":
        return (0, clamp_u8(255 * (0.2 + 0.8 * ratio)), 0)
    if theme == "retro":
        cos = math.cos(cycle * math.pi * 2)
        return (clamp_u8(255 * (0.4 + 0.6 * wave)), clamp_u8(107 * (0.4 + 0.6 * cos)), 53)
    cos = math.cos(cycle * math.pi * 2)
    return (0, clamp_u8(191 * (0.3 + 0.7 * cos)), clamp_u8(255 * (0.3 + 0.7 * wave)))


class MandelbrotASCII:
    def __init__(self, surface: pygame.Surface, config: Optional[Mapping[str, Any]] = None) -> None:
        self.name = "mandelbrot"
        self.kit = PatternKit(surface, config)
        self._initialized = False
        self.iterations: List[List[int]] = []
        self.center = PRESET_POINTS[0][:2]
        self.zoom = PRESET_POINTS[0][2]
        self.zoom_direction = 1
        self.point_index = 0
        self.point_timer = 0.0
        self.time = 0.0
        self._computed_zoom = 0.0
        self._apply_complexity()
        self._apply_speed()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _apply_complexity(self) -> None:
        complexity = self.kit.config.get("complexity", "medium")
        self.max_iterations, self.charset = COMPLEXITY_STYLES.get(complexity, COMPLEXITY_STYLES["medium"])

    def _apply_speed(self) -> None:
        speed = self.kit.config.get("speed", "medium")
        self.zoom_speed, self.color_cycle_speed, self.point_duration = SPEED_STYLES.get(
            speed, SPEED_STYLES["medium"]
        )

    @property
    def iteration_limit(self) -> int:
        return max(8, self.max_iterations // (1 + self.kit.degradation_level()))

    def initialize(self) -> None:
        self._initialized = True
        self.time = 0.0
        self.point_timer = 0.0
        self.point_index = 0
        self._go_to_point(0)

    def _go_to_point(self, index: int) -> None:
        x, y, zoom = PRESET_POINTS[index]
        self.point_index = index
        self.center = (x, y)
        self.zoom = zoom
        self.zoom_direction = 1
        self.recalculate()

    def recalculate(self) -> None:
        """Recompute the escape count of every cell for the current view."""
        columns, rows = self.kit.columns, self.kit.rows
        limit = self.iteration_limit
        self._computed_zoom = self.zoom
        if not columns or not rows:
            self.iterations = []
            return
        aspect = columns / rows
        scale = 4.0 / self.zoom
        cx, cy = self.center
        self.iterations = [
            [
                escape_iterations(
                    cx + (px - columns / 2) * scale / columns * aspect,
                    cy + (py - rows / 2) * scale / rows,
                    limit,
                )
                for px in range(columns)
            ]
            for py in range(rows)
        ]

    def char_for(self, iterations: int) -> str:
        limit = self.iteration_limit
        last = len(self.charset) - 1
        if iterations >= limit:
            return self.charset[last]
        return self.charset[min(last, int(iterations / limit * last))]

    def color_for(self, iterations: int) -> Color:
        limit = self.iteration_limit
        if iterations >= limit:
            return self.kit.theme.base
        ratio = iterations / limit
        cycle = (self.time * self.color_cycle_speed + ratio) % 1.0
        return gradient_color(self.kit.config.get("current_theme"), ratio, cycle)

    def update(self, delta_ms: float) -> None:
        if not self._initialized:
            return
        self.time += delta_ms
        self.point_timer += delta_ms
        if self.point_timer >= self.point_duration:
            self.point_timer = 0.0
            self._go_to_point((self.point_index + 1) % len(PRESET_POINTS))

        self.zoom *= 1 + self.zoom_speed * self.zoom_direction * delta_ms / 1000.0
        if self.zoom >= MAX_ZOOM:
            self.zoom, self.zoom_direction = MAX_ZOOM, -1
        elif self.zoom <= MIN_ZOOM:
            self.zoom, self.zoom_direction = MIN_ZOOM, 1

        if abs(self.zoom - self._computed_zoom) / self._computed_zoom > RECALC_RATIO:
            self.recalculate()

    def render(self) -> None:
        if not self._initialized:
            return
        kit = self.kit
        kit.clear()
        for y, row in enumerate(self.iterations):
            for x, n in enumerate(row):
                ch = self.char_for(n)
                if ch != " ":
                    kit.draw_char(ch, x, y, self.color_for(n))
        if kit.config.get("show_info", True) and kit.degradation_level() == 0:
            self._render_info_overlay()

    def _render_info_overlay(self) -> None:
        kit = self.kit
        if kit.rows < 3 or kit.columns < 20:
            return
        info = f"Mandelbrot | Zoom: {self.zoom:.1f}x | Point {self.point_index + 1}/{len(PRESET_POINTS)}"
        kit.draw_text(info, 0, 0, kit.theme.accent)

    def cleanup(self) -> None:
        self._initialized = False
        self.iterations = []
        self.time = 0.0
        self.point_timer = 0.0
        self.point_index = 0

    def on_resize(self, columns: int, rows: int) -> None:
        self.kit.resize(columns, rows)
        if self._initialized:
            self.recalculate()

    def set_config(self, partial: Mapping[str, Any]) -> None:
        self.kit.merge_config(partial)
        if "speed" in partial:
            self._apply_speed()
        if "complexity" in partial:
            self._apply_complexity()
        if self._initialized and ("complexity" in partial or "degradation_level" in partial):
            self.recalculate()

    def get_config(self) -> Dict[str, Any]:
        return self.kit.get_config()

    def set_surface(self, surface: pygame.Surface) -> None:
        self.kit.surface = surface

    def get_animation_state(self) -> Dict[str, Any]:
        return {
            "zoom": self.zoom,
            "center": self.center,
            "point": self.point_index,
            "zoom_direction": self.zoom_direction,
            "max_iterations": self.iteration_limit,
            "point_progress": self.point_timer / self.point_duration,
        }
