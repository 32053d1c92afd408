from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

Color = Tuple[int, int, int]


@dataclass(frozen=True)
class Theme:
    name: str
    base: Color    # main glyph color
    info: Color    # dim overlay text
    accent: Color  # highlights (rain heads, etc.)


THEMES: Dict[str, Theme] = {
    "matrix": Theme("matrix", (0, 255, 0), (0, 68, 0), (255, 255, 255)),
    "terminal": Theme("terminal", (0, 255, 0), (0, 68, 0), (200, 255, 200)),
    "retro": Theme("retro", (255, 107, 53), (102, 34, 0), (255, 0, 255)),
    "blue": Theme("blue", (0, 191, 255), (0, 34, 68), (200, 240, 255)),
}


def get_theme(name: str | None) -> Theme:
    return THEMES.get(name or "matrix", THEMES["matrix"])


def clamp_u8(x: float) -> int:
    return max(0, min(255, int(x)))


def scale_rgb(col: Color, m: float) -> Color:
    return (clamp_u8(col[0] * m), clamp_u8(col[1] * m), clamp_u8(col[2] * m))


def age_color(theme_name: str | None, age_ratio: float) -> Color:
    """
    Color for a cell of the given age ratio (0 = newborn, 1 = max age).

    Young cells are bright and fade toward a darker shade of the theme as
    they age; retro additionally shifts from orange toward red.
    """
    r = max(0.0, min(1.0, age_ratio))
    theme = get_theme(theme_name).name
    if theme == "matrix":
        return (0, clamp_u8(255 * (1 - r * 0.7)), 0)
    if theme == "terminal":
        return (0, clamp_u8(255 * (0.8 - r * 0.5)), 0)
    if theme == "retro":
        return (clamp_u8(255 * (0.6 + r * 0.4)), clamp_u8(107 * (1 - r * 0.6)), 53)
    # blue
    return (0, clamp_u8(191 * (0.8 - r * 0.4)), clamp_u8(255 * (1 - r * 0.6)))
