from __future__ import annotations

"""
Layer compositor.

Each layer owns one offscreen surface and at most one pattern (or a pair, while
that layer is mid-transition). Per tick every layer updates and renders into
its own surface; composite() then draws the surfaces onto the visible surface
in ascending z_index, with per-layer opacity, blend mode and post effects.

Policy: add_pattern_to_layer() creates a missing layer on demand, with a
z_index that follows insertion order. Every other operation on an unknown
layer raises LayerNotFoundError.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import pygame

from asciiscreen.errors import LayerNotFoundError
from asciiscreen.patterns.base import Pattern
from asciiscreen.render.glyphs import GridInfo
from asciiscreen.rng import RNG, new_rng
from asciiscreen.transitions import TransitionConfig, TransitionManager, settle
from asciiscreen.visual_effects import BLEND_MODES, apply_effect, blit_blended, get_effect

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

# (pattern_name, pattern_config) -> initialized pattern sized to the grid
PatternBuilder = Callable[[str, Optional[Mapping[str, Any]]], Pattern]

ANIMATABLE_PROPERTIES = ("opacity", "z_index")


@dataclass
class LayerAnimation:
    prop: str
    start: float
    target: float
    duration: float
    future: Future
    elapsed: float = 0.0

    def value(self) -> float:
        if self.duration <= 0:
            return self.target
        t = min(1.0, self.elapsed / self.duration)
        return self.start + (self.target - self.start) * t

    @property
    def finished(self) -> bool:
        return self.elapsed >= self.duration


@dataclass
class Layer:
    name: str
    z_index: int
    surface: pygame.Surface
    transitions: TransitionManager
    opacity: float = 1.0
    blend_mode: str = "normal"
    pattern: Optional[Pattern] = None
    effects: List[Tuple[str, float]] = field(default_factory=list)
    order: int = 0

    def live_patterns(self) -> List[Pattern]:
        if self.transitions.is_transitioning():
            return self.transitions.patterns()
        return [self.pattern] if self.pattern is not None else []


class LayerManager:
    def __init__(
        self,
        surface: pygame.Surface,
        grid: GridInfo,
        build_pattern: PatternBuilder,
        *,
        background: RGB = (0, 0, 0),
        rng: Optional[RNG] = None,
    ) -> None:
        self.surface = surface
        self.grid = grid
        self.build_pattern = build_pattern
        self.background = background
        self.rng = rng or new_rng()
        self.effects_enabled = True
        self._layers: Dict[str, Layer] = {}
        self._animations: Dict[Tuple[str, str], LayerAnimation] = {}
        self._created = 0

    # ---- layer bookkeeping --------------------------------------------------

    def create_layer(
        self,
        name: str,
        z_index: Optional[int] = None,
        opacity: float = 1.0,
        blend_mode: str = "normal",
    ) -> Layer:
        if name in self._layers:
            return self._layers[name]
        if blend_mode not in BLEND_MODES:
            raise ValueError(f"Unsupported blend mode: {blend_mode!r}")
        layer_surface = self._new_layer_surface()
        layer = Layer(
            name=name,
            z_index=self._created if z_index is None else int(z_index),
            surface=layer_surface,
            transitions=TransitionManager(
                layer_surface,
                background=self.background,
                rng=self.rng.spawn(),
                cell_size=(self.grid.cell_width, self.grid.cell_height),
            ),
            opacity=max(0.0, min(1.0, float(opacity))),
            blend_mode=blend_mode,
            order=self._created,
        )
        layer.transitions.on_complete = lambda pattern, layer=layer: self._adopt(layer, pattern)
        self._created += 1
        self._layers[name] = layer
        return layer

    def _require(self, name: str) -> Layer:
        layer = self._layers.get(name)
        if layer is None:
            raise LayerNotFoundError(name)
        return layer

    def _new_layer_surface(self) -> pygame.Surface:
        surf = pygame.Surface(self.surface.get_size())
        surf.fill(self.background)
        surf.set_colorkey(self.background)
        return surf

    def _adopt(self, layer: Layer, pattern: Pattern) -> None:
        pattern.set_surface(layer.surface)
        layer.pattern = pattern

    def get_layer(self, name: str) -> Optional[Layer]:
        return self._layers.get(name)

    def get_all_layers(self) -> List[Layer]:
        return sorted(self._layers.values(), key=lambda layer: (layer.z_index, layer.order))

    def has_layers(self) -> bool:
        return bool(self._layers)

    def live_patterns(self) -> List[Pattern]:
        out: List[Pattern] = []
        for layer in self._layers.values():
            out.extend(layer.live_patterns())
        return out

    # ---- patterns -----------------------------------------------------------

    def add_pattern_to_layer(
        self,
        layer_name: str,
        pattern_name: str,
        transition: Any = None,
        pattern_config: Optional[Mapping[str, Any]] = None,
    ) -> Future:
        """
        Put a freshly built pattern on a layer, creating the layer if needed.

        Without a transition the previous pattern is cleaned up at once; with
        one, the layer blends from the old pattern to the new. The returned
        future resolves once the new pattern is the layer's pattern.
        """
        cfg = TransitionConfig.coerce(transition) if transition is not None else None
        if cfg is not None:
            cfg.validate()
        # Build first: an unknown name must not create the layer.
        pattern = self.build_pattern(pattern_name, pattern_config)
        layer = self._layers.get(layer_name) or self.create_layer(layer_name)
        future: Future = Future()

        if layer.transitions.is_transitioning():
            layer.transitions.force_complete()

        old = layer.pattern
        if old is not None and cfg is not None:
            layer.transitions.start(old, pattern, cfg, future)
            return future

        if old is not None:
            old.cleanup()
        self._adopt(layer, pattern)
        settle(future, getattr(pattern, "name", pattern_name))
        return future

    def remove_pattern_from_layer(self, name: str) -> None:
        layer = self._require(name)
        if layer.transitions.is_transitioning():
            layer.transitions.abort()
        elif layer.pattern is not None:
            layer.pattern.cleanup()
        layer.pattern = None
        layer.surface.fill(self.background)

    def remove_layer(self, name: str) -> None:
        self.remove_pattern_from_layer(name)
        for key in [k for k in self._animations if k[0] == name]:
            self._animations.pop(key).future.cancel()
        del self._layers[name]

    # ---- properties ---------------------------------------------------------

    def update_layer(
        self,
        name: str,
        *,
        opacity: Optional[float] = None,
        blend_mode: Optional[str] = None,
        z_index: Optional[int] = None,
    ) -> None:
        layer = self._require(name)
        if opacity is not None:
            layer.opacity = max(0.0, min(1.0, float(opacity)))
        if blend_mode is not None:
            if blend_mode not in BLEND_MODES:
                raise ValueError(f"Unsupported blend mode: {blend_mode!r}")
            layer.blend_mode = blend_mode
        if z_index is not None:
            layer.z_index = int(z_index)

    def apply_layer_effect(self, name: str, kind: str, param: Optional[float] = None) -> None:
        """Attach a post-process filter; re-applying a kind replaces its parameter."""
        layer = self._require(name)
        eff = get_effect(kind)
        if eff is None:
            raise ValueError(f"Unknown layer effect: {kind!r}")
        if kind == "none":
            layer.effects.clear()
            return
        value = eff.default_param if param is None else float(param)
        layer.effects = [(k, v) for (k, v) in layer.effects if k != kind]
        layer.effects.append((kind, value))

    def clear_layer_effect(self, name: str) -> None:
        self._require(name).effects.clear()

    def animate_layer(self, name: str, prop: str, target: float, duration: float) -> Future:
        """
        Linearly move a numeric layer property to target over duration ms.

        A second animation of the same layer and property replaces the first
        (its future is cancelled); the value continues from where it is now.
        """
        layer = self._require(name)
        prop = "z_index" if prop == "zIndex" else prop
        if prop not in ANIMATABLE_PROPERTIES:
            raise ValueError(f"Cannot animate layer property {prop!r}")
        key = (name, prop)
        previous = self._animations.pop(key, None)
        if previous is not None:
            previous.future.cancel()
        future: Future = Future()
        anim = LayerAnimation(
            prop=prop,
            start=float(getattr(layer, prop)),
            target=float(target),
            duration=max(0.0, float(duration)),
            future=future,
        )
        self._animations[key] = anim
        if anim.duration == 0:
            self._step_animations(0.0)
        return future

    def _step_animations(self, delta_ms: float) -> None:
        done: List[Tuple[str, str]] = []
        for key, anim in self._animations.items():
            layer = self._layers.get(key[0])
            if layer is None:
                done.append(key)
                continue
            anim.elapsed += delta_ms
            value = anim.value()
            if anim.prop == "opacity":
                layer.opacity = max(0.0, min(1.0, value))
            else:
                layer.z_index = int(round(value))
            if anim.finished:
                done.append(key)
        for key in done:
            anim = self._animations.pop(key)
            settle(anim.future, anim.target)

    # ---- per tick -----------------------------------------------------------

    def update(self, delta_ms: float) -> None:
        """Advance animations, then update and render every layer's pattern."""
        self._step_animations(delta_ms)
        for layer in self.get_all_layers():
            if layer.transitions.is_transitioning():
                layer.transitions.advance(delta_ms)
            elif layer.pattern is not None:
                layer.surface.fill(self.background)
                layer.pattern.update(delta_ms)
                layer.pattern.render()

    def composite(self, target: Optional[pygame.Surface] = None) -> None:
        out = target if target is not None else self.surface
        out.fill(self.background)
        for layer in self.get_all_layers():
            if layer.opacity <= 0 or not layer.live_patterns():
                continue
            src = layer.surface
            if self.effects_enabled:
                for kind, param in layer.effects:
                    src = apply_effect(src, kind, param)
            blit_blended(out, src, layer.opacity, layer.blend_mode, key=self.background)

    def render(self) -> None:
        self.composite()

    # ---- sizing / teardown ----------------------------------------------------

    def resize(self, surface: pygame.Surface, grid: GridInfo) -> None:
        self.surface = surface
        self.grid = grid
        for layer in self._layers.values():
            layer.surface = self._new_layer_surface()
            layer.transitions.resize(layer.surface, (grid.cell_width, grid.cell_height))
            if not layer.transitions.is_transitioning() and layer.pattern is not None:
                layer.pattern.set_surface(layer.surface)
            for pattern in layer.live_patterns():
                pattern.on_resize(grid.columns, grid.rows)

    def cleanup(self) -> None:
        for anim in self._animations.values():
            anim.future.cancel()
        self._animations.clear()
        for name in list(self._layers):
            self.remove_layer(name)
        self._created = 0
