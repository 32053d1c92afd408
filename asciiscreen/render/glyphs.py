"""Monospace glyph drawing and grid math shared by the engine and patterns."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Tuple

import pygame

RGB = Tuple[int, int, int]

GLYPH_CACHE_LIMIT = 4096


@dataclass(frozen=True)
class GridInfo:
    columns: int
    rows: int
    cell_width: int
    cell_height: int


def ensure_font_init() -> None:
    if not pygame.font.get_init():
        pygame.font.init()


@lru_cache(maxsize=32)
def load_font(family: str, size: int) -> pygame.font.Font:
    """Monospace font for the given CSS-style family list (first match wins)."""
    ensure_font_init()
    names = [n.strip().strip("'\"") for n in family.split(",") if n.strip()]
    return pygame.font.SysFont(names or None, max(1, int(size)))


def measure_cell(font: pygame.font.Font, font_size: int, line_height: float = 1.2) -> Tuple[int, int]:
    """Cell size in pixels: advance width of 'M' by font_size * line_height."""
    width = font.size("M")[0]
    height = int(font_size * line_height)
    return max(1, width), max(1, height)


def compute_grid(width: int, height: int, cell_width: int, cell_height: int) -> GridInfo:
    """Grid for a pixel surface, never smaller than 1x1 even for a 0x0 surface."""
    cell_width = max(1, int(cell_width))
    cell_height = max(1, int(cell_height))
    columns = max(1, int(width) // cell_width)
    rows = max(1, int(height) // cell_height)
    return GridInfo(columns, rows, cell_width, cell_height)


def to_rgb(color) -> RGB:
    """Accept '#rrggbb', color names, pygame.Color or tuples."""
    c = pygame.Color(color) if not isinstance(color, pygame.Color) else color
    return (c.r, c.g, c.b)


def clamp_u8(x: float) -> int:
    return max(0, min(255, int(x)))


def fade_rgb(col: RGB, amount: float, background: RGB = (0, 0, 0)) -> RGB:
    """Mix col toward background; amount=1 keeps col, 0 yields background."""
    t = max(0.0, min(1.0, amount))
    return (
        clamp_u8(background[0] + (col[0] - background[0]) * t),
        clamp_u8(background[1] + (col[1] - background[1]) * t),
        clamp_u8(background[2] + (col[2] - background[2]) * t),
    )


class GlyphPainter:
    """
    Draws single characters at grid positions on a target surface.

    Rendered glyphs are cached per (char, color); the cache is dropped
    wholesale when it grows past GLYPH_CACHE_LIMIT.
    """

    def __init__(self, font_size: int = 12, font_family: str = "monospace", line_height: float = 1.2) -> None:
        self.font_size = int(font_size)
        self.font_family = font_family
        self.line_height = line_height
        self.font = load_font(font_family, self.font_size)
        self.cell_width, self.cell_height = measure_cell(self.font, self.font_size, line_height)
        self._cache: Dict[Tuple[str, RGB], pygame.Surface] = {}

    def glyph(self, ch: str, color: RGB) -> pygame.Surface:
        key = (ch, color)
        surf = self._cache.get(key)
        if surf is None:
            if len(self._cache) >= GLYPH_CACHE_LIMIT:
                self._cache.clear()
            surf = self.font.render(ch, True, color)
            self._cache[key] = surf
        return surf

    def draw_char(self, surface: pygame.Surface, ch: str, x: int, y: int, color: RGB,
                  columns: int, rows: int) -> None:
        if x < 0 or x >= columns or y < 0 or y >= rows or not ch or ch == " ":
            return
        surface.blit(self.glyph(ch, color), (x * self.cell_width, y * self.cell_height))

    def clear_cell(self, surface: pygame.Surface, x: int, y: int, color: RGB) -> None:
        rect = pygame.Rect(x * self.cell_width, y * self.cell_height, self.cell_width, self.cell_height)
        surface.fill(color, rect)
