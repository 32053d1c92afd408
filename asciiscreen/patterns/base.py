from __future__ import annotations

"""
Pattern plugin contract plus the shared toolkit patterns compose.

A pattern is any object with the lifecycle below. There is no base class to
inherit from: concrete patterns hold a PatternKit and delegate the common
parts (config merge, grid bookkeeping, glyph drawing, RNG, multipliers) to it.

Lifecycle rules every pattern honours:
- update()/render() before initialize() are silent no-ops.
- cleanup() is idempotent and leaves the instance uninitialized.
- on_resize() may be called any number of times and rebuilds grid buffers.
- set_config() is a shallow merge.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

import pygame

from asciiscreen.config import DEFAULT_PATTERN_CONFIG, DENSITY_MULTIPLIERS, SPEED_MULTIPLIERS
from asciiscreen.patterns.themes import Theme, get_theme
from asciiscreen.render.glyphs import RGB, GlyphPainter, to_rgb
from asciiscreen.rng import RNG, new_rng

DEFAULT_FONT_FAMILY = "Courier New, Monaco, Consolas, monospace"
FONT_KEYS = frozenset({"font_size", "font_family", "line_height"})


@runtime_checkable
class Pattern(Protocol):
    name: str

    @property
    def initialized(self) -> bool: ...

    def initialize(self) -> None: ...

    def update(self, delta_ms: float) -> None: ...

    def render(self) -> None: ...

    def cleanup(self) -> None: ...

    def on_resize(self, columns: int, rows: int) -> None: ...

    def set_config(self, partial: Mapping[str, Any]) -> None: ...

    def get_config(self) -> Dict[str, Any]: ...

    def set_surface(self, surface: pygame.Surface) -> None: ...


# (surface, config) -> Pattern
PatternFactory = Callable[[pygame.Surface, Mapping[str, Any]], Pattern]


class PatternKit:
    """Reusable helper: grid math, character drawing and RNG utilities."""

    def __init__(
        self,
        surface: pygame.Surface,
        config: Optional[Mapping[str, Any]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.surface = surface
        self.config: Dict[str, Any] = dict(DEFAULT_PATTERN_CONFIG)
        if defaults:
            self.config.update(defaults)
        if config:
            self.config.update(config)
        self.columns = 0
        self.rows = 0
        self.rng: RNG = new_rng(self.config.get("seed"))
        self.painter = self._make_painter()

    def _make_painter(self) -> GlyphPainter:
        return GlyphPainter(
            int(self.config.get("font_size", 12)),
            str(self.config.get("font_family", DEFAULT_FONT_FAMILY)),
            float(self.config.get("line_height", 1.2)),
        )

    # ---- grid -------------------------------------------------------------

    @property
    def cell_width(self) -> int:
        return self.painter.cell_width

    @property
    def cell_height(self) -> int:
        return self.painter.cell_height

    def resize(self, columns: int, rows: int) -> None:
        self.columns = max(0, int(columns))
        self.rows = max(0, int(rows))

    # ---- config -----------------------------------------------------------

    def merge_config(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        """Shallow-merge partial into the config; returns a copy of it."""
        self.config.update(partial)
        if FONT_KEYS.intersection(partial):
            self.painter = self._make_painter()
        return dict(partial)

    def get_config(self) -> Dict[str, Any]:
        return dict(self.config)

    def speed_multiplier(self) -> float:
        return SPEED_MULTIPLIERS.get(self.config.get("speed"), 1.0)

    def density_multiplier(self) -> float:
        return DENSITY_MULTIPLIERS.get(self.config.get("density"), 0.6)

    def degradation_level(self) -> int:
        return int(self.config.get("degradation_level", 0) or 0)

    @property
    def theme(self) -> Theme:
        return get_theme(self.config.get("current_theme"))

    @property
    def background(self) -> RGB:
        return to_rgb(self.config.get("background_color", "#000000"))

    # ---- drawing ----------------------------------------------------------

    def clear(self, color: Optional[RGB] = None) -> None:
        self.surface.fill(color if color is not None else self.background)

    def draw_char(self, ch: str, x: int, y: int, color: RGB) -> None:
        self.painter.draw_char(self.surface, ch, x, y, color, self.columns, self.rows)

    def draw_text(self, text: str, x: int, y: int, color: RGB) -> None:
        for i, ch in enumerate(text):
            if x + i >= self.columns:
                break
            self.draw_char(ch, x + i, y, color)

    # ---- randomness -------------------------------------------------------

    def random_char(self, charset: Optional[str] = None) -> str:
        chars = charset or self.config.get("characters") or "01"
        return chars[self.rng.randrange(len(chars))]

    def random_range(self, lo: float, hi: float) -> float:
        return self.rng.uniform(lo, hi)

    def random_int(self, lo: int, hi: int) -> int:
        """Inclusive on both ends; collapses to lo when hi < lo."""
        if hi <= lo:
            return lo
        return self.rng.randint(lo, hi)


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)
