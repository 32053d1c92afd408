from __future__ import annotations

"""
asciiscreen/visual_effects.py

Named post-process filters for layer surfaces, plus the blend modes layers
composite with.

Everything is looked up by name: a layer declares ("blur", 2.0) and the
registry below knows what that means. A filter takes the layer surface and
a numeric parameter and returns a new surface; it never mutates its input.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import pygame

SurfaceFilter = Callable[[pygame.Surface, float], pygame.Surface]


@dataclass
class VisualEffectDef:
    """Definition registered under a name."""
    name: str
    apply: SurfaceFilter
    default_param: float = 1.0


EFFECTS: Dict[str, VisualEffectDef] = {}


def register_effect(defn: VisualEffectDef) -> None:
    EFFECTS[defn.name] = defn


def get_effect(name: str) -> Optional[VisualEffectDef]:
    return EFFECTS.get(name)


def apply_effect(surface: pygame.Surface, name: str, param: Optional[float] = None) -> pygame.Surface:
    eff = get_effect(name)
    if eff is None:
        return surface
    out = eff.apply(surface, eff.default_param if param is None else float(param))
    key = surface.get_colorkey()
    if key is not None and out is not surface:
        out.set_colorkey(key)
    return out


# ---------------------------------------------------------------------------
# Built-in filters
# ---------------------------------------------------------------------------

def _scale(surface: pygame.Surface, size) -> pygame.Surface:
    if surface.get_bitsize() in (24, 32):
        return pygame.transform.smoothscale(surface, size)
    return pygame.transform.scale(surface, size)


def _blur(surface: pygame.Surface, radius: float) -> pygame.Surface:
    # Downsample then upsample: cheap box-ish blur that works on any pygame.
    if radius <= 0:
        return surface.copy()
    w, h = surface.get_size()
    factor = 1.0 + radius
    small = _scale(surface, (max(1, int(w / factor)), max(1, int(h / factor))))
    return _scale(small, (w, h))


def _glow(surface: pygame.Surface, intensity: float) -> pygame.Surface:
    out = surface.copy()
    if intensity <= 0:
        return out
    halo = _blur(surface, 2.0 * intensity)
    out.blit(halo, (0, 0), special_flags=pygame.BLEND_RGB_ADD)
    return out


def _brightness(surface: pygame.Surface, factor: float) -> pygame.Surface:
    out = surface.copy()
    if factor < 1.0:
        k = max(0, int(255 * factor))
        out.fill((k, k, k), special_flags=pygame.BLEND_RGB_MULT)
    elif factor > 1.0:
        extra = surface.copy()
        k = min(255, int(255 * (factor - 1.0)))
        extra.fill((k, k, k), special_flags=pygame.BLEND_RGB_MULT)
        out.blit(extra, (0, 0), special_flags=pygame.BLEND_RGB_ADD)
    return out


def _none(surface: pygame.Surface, _param: float) -> pygame.Surface:
    return surface


def _install_builtin_effects() -> None:
    register_effect(VisualEffectDef("blur", _blur, default_param=1.0))
    register_effect(VisualEffectDef("glow", _glow, default_param=1.0))
    register_effect(VisualEffectDef("brightness", _brightness, default_param=1.0))
    register_effect(VisualEffectDef("none", _none, default_param=0.0))


_install_builtin_effects()


# ---------------------------------------------------------------------------
# Compositing lane: blend modes
# ---------------------------------------------------------------------------

BLEND_MODES: Dict[str, int] = {
    "normal": 0,
    "add": pygame.BLEND_RGB_ADD,
    "multiply": pygame.BLEND_RGB_MULT,
    "subtract": pygame.BLEND_RGB_SUB,
    "lighten": pygame.BLEND_RGB_MAX,
    "darken": pygame.BLEND_RGB_MIN,
}


# Colour that leaves the target unchanged under each special-flag mode.
BLEND_IDENTITY: Dict[str, tuple] = {
    "add": (0, 0, 0),
    "subtract": (0, 0, 0),
    "lighten": (0, 0, 0),
    "multiply": (255, 255, 255),
    "darken": (255, 255, 255),
}


def blit_blended(
    target: pygame.Surface,
    source: pygame.Surface,
    opacity: float,
    blend_mode: str,
    key: Optional[tuple] = None,
) -> None:
    """
    Composite source onto target at (0, 0) with opacity in [0, 1].

    Pixels matching the colorkey (key, or the one already set on source) are
    transparent in every mode. pygame ignores colorkeys on special-flag
    blits, so for those modes keyed pixels are first replaced by the mode's
    identity colour, and opacity fades the source toward that identity.
    """
    opacity = max(0.0, min(1.0, opacity))
    if opacity <= 0.0:
        return
    src = source.copy()
    if key is not None:
        src.set_colorkey(key)
    flags = BLEND_MODES.get(blend_mode, 0)
    if flags == 0:
        if opacity < 1.0:
            src.set_alpha(int(opacity * 255))
        target.blit(src, (0, 0))
        return

    identity = BLEND_IDENTITY[blend_mode]
    prepared = pygame.Surface(source.get_size())
    prepared.fill(identity)
    prepared.blit(src, (0, 0))
    if opacity < 1.0:
        a = int(opacity * 255)
        prepared.fill((a, a, a), special_flags=pygame.BLEND_RGB_MULT)
        if identity != (0, 0, 0):
            inv = 255 - a
            prepared.fill((inv, inv, inv), special_flags=pygame.BLEND_RGB_ADD)
    target.blit(prepared, (0, 0), special_flags=flags)
