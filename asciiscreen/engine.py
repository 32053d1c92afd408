from __future__ import annotations

"""
Engine: owns the drawing surface, the pattern registry, the active pattern
and the per-tick orchestration.

The engine never runs a loop of its own. A tick source (see scheduler.py)
calls _tick() once per frame; tests drive it with a ManualTickSource and the
host window with a ClockTickSource. All state changes happen on that single
call path, so switch_pattern() calls made from inside a tick (for instance by
a pattern's own update()) are queued and applied once the tick is over.
"""

import logging
import math
from concurrent.futures import Future
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import pygame

from asciiscreen.config import ConfigStore, EngineConfig
from asciiscreen.errors import AsciiScreenError, PatternNotFoundError
from asciiscreen.layers import LayerManager
from asciiscreen.patterns import BUILTIN_PATTERNS
from asciiscreen.patterns.base import FONT_KEYS, Pattern, PatternFactory
from asciiscreen.performance import PerformanceConfig, PerformanceMetrics, PerformanceMonitor
from asciiscreen.render.glyphs import GridInfo, compute_grid, load_font, measure_cell, to_rgb
from asciiscreen.rng import RNG, new_rng
from asciiscreen.scheduler import ClockTickSource, TickSource
from asciiscreen.sync import PatternSynchronizer
from asciiscreen.transitions import TransitionConfig, TransitionManager, TransitionState, settle

logger = logging.getLogger(__name__)

_PendingSwitch = Tuple[str, Any, Optional[Mapping[str, Any]], Future]


class Engine:
    def __init__(
        self,
        surface: pygame.Surface,
        config: Union[EngineConfig, Mapping[str, Any], None] = None,
        *,
        store: Optional[ConfigStore] = None,
        tick_source: Optional[TickSource] = None,
        monitor: Optional[PerformanceMonitor] = None,
        synchronizer: Optional[PatternSynchronizer] = None,
        rng: Optional[RNG] = None,
    ) -> None:
        self.cfg = config if isinstance(config, EngineConfig) else EngineConfig.from_mapping(config)
        self.surface = surface
        self.store = store
        self.tick_source: TickSource = tick_source or ClockTickSource(self.cfg.target_fps)
        self.rng = rng or new_rng()
        self.background = to_rgb(self.cfg.background_color)

        self.registry: Dict[str, PatternFactory] = {}
        self.current: Optional[Pattern] = None
        self.multi_layer = False
        self.synchronizer = synchronizer

        self.grid = self._measure_grid(*surface.get_size())
        self.transitions = TransitionManager(
            surface,
            background=self.background,
            on_complete=self._on_transition_complete,
            rng=self.rng.spawn(),
            cell_size=(self.grid.cell_width, self.grid.cell_height),
        )
        self.layers = LayerManager(
            surface,
            self.grid,
            self._build_pattern,
            background=self.background,
            rng=self.rng.spawn(),
        )

        self.monitor = monitor or PerformanceMonitor(PerformanceConfig(target_fps=self.cfg.target_fps))
        self.monitor.add_callback(self._on_metrics)
        self._degradation = self.monitor.get_metrics().degradation_level

        self._last_time: Optional[float] = None
        self._in_tick = False
        self._switching = False
        self._pending: List[_PendingSwitch] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        if store is not None:
            self._unsubscribe = store.subscribe(self._on_store_change)

        for name, factory in BUILTIN_PATTERNS.items():
            self.register_pattern(name, factory)

    # ------------------------------------------------------------------ #
    # Debug logging

    def _debug(self, msg: str, *args: Any) -> None:
        if self.cfg.enable_debug:
            logger.debug(msg, *args)

    # ------------------------------------------------------------------ #
    # Grid

    def _measure_grid(self, width: int, height: int) -> GridInfo:
        font = load_font(self.cfg.font_family, int(self.cfg.font_size))
        cw, ch = measure_cell(font, int(self.cfg.font_size), self.cfg.line_height)
        return compute_grid(max(0, int(width)), max(0, int(height)), cw, ch)

    def get_grid_dimensions(self) -> GridInfo:
        return self.grid

    def get_surface(self) -> pygame.Surface:
        return self.surface

    def resize(self, width: int, height: int, surface: Optional[pygame.Surface] = None) -> None:
        """Adopt a new pixel size (and optionally a host surface); never fails for 0x0."""
        width, height = max(0, int(width)), max(0, int(height))
        if surface is None:
            surface = pygame.Surface((max(1, width), max(1, height)))
        self.surface = surface
        self.grid = self._measure_grid(width, height)
        cell = (self.grid.cell_width, self.grid.cell_height)

        self.transitions.resize(surface, cell)
        if not self.transitions.is_transitioning() and self.current is not None:
            self.current.set_surface(surface)
        for pattern in self._single_patterns():
            pattern.on_resize(self.grid.columns, self.grid.rows)
        self.layers.resize(surface, self.grid)
        self._debug("Resized to %dx%d px, grid %dx%d", width, height, self.grid.columns, self.grid.rows)

    # ------------------------------------------------------------------ #
    # Registry / construction

    def register_pattern(self, name: str, factory: PatternFactory) -> None:
        """Register a constructor under name; a later registration replaces an earlier one."""
        if name in self.registry:
            self._debug("Replacing pattern registration %r", name)
        self.registry[name] = factory
        self._debug("Registered pattern %r", name)

    def get_registered_patterns(self) -> List[str]:
        return list(self.registry)

    def _pattern_config(self, overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        cfg: Dict[str, Any] = self.store.snapshot() if self.store is not None else {}
        cfg.update(
            font_size=self.cfg.font_size,
            font_family=self.cfg.font_family,
            line_height=self.cfg.line_height,
            background_color=self.cfg.background_color,
            degradation_level=self._degradation,
        )
        if overrides:
            cfg.update(overrides)
        return cfg

    def _build_pattern(self, name: str, overrides: Optional[Mapping[str, Any]] = None) -> Pattern:
        """Construct, size and initialize a registered pattern."""
        factory = self.registry.get(name)
        if factory is None:
            raise PatternNotFoundError(name)
        pattern = factory(self.surface, self._pattern_config(overrides))
        pattern.name = name
        pattern.on_resize(self.grid.columns, self.grid.rows)
        try:
            pattern.initialize()
        except Exception:
            pattern.cleanup()
            raise
        return pattern

    # ------------------------------------------------------------------ #
    # Switching

    def get_current_pattern(self) -> Optional[Pattern]:
        return self.current

    def get_transition_state(self) -> TransitionState:
        return self.transitions.get_state()

    def switch_pattern(
        self,
        name: str,
        transition: Any = None,
        pattern_config: Optional[Mapping[str, Any]] = None,
    ) -> Future:
        """
        Make `name` the active pattern.

        Returns a Future that resolves with the pattern name once it is the
        current pattern (immediately when nothing was active), or fails with
        PatternNotFoundError / InvalidTransitionConfigError / whatever the
        pattern raised while being built. A failure leaves the engine as it was.
        """
        future: Future = Future()
        if self._in_tick or self._switching:
            self._debug("Deferring switch to %r", name)
            self._pending.append((name, transition, pattern_config, future))
            return future
        self._switch(name, transition, pattern_config, future)
        self._drain_pending()
        return future

    def _switch(
        self,
        name: str,
        transition: Any,
        pattern_config: Optional[Mapping[str, Any]],
        future: Future,
    ) -> None:
        # Settling a future runs its done-callbacks, which may call
        # switch_pattern again; those calls queue until this one is finished.
        self._switching = True
        try:
            self._start_switch(name, transition, pattern_config, future)
        finally:
            self._switching = False

    def _start_switch(
        self,
        name: str,
        transition: Any,
        pattern_config: Optional[Mapping[str, Any]],
        future: Future,
    ) -> None:
        if future.done():
            return
        try:
            cfg = TransitionConfig.coerce(transition)
            cfg.validate()
            pattern = self._build_pattern(name, pattern_config)
        except AsciiScreenError as exc:
            logger.warning("Switch to %r rejected: %s", name, exc)
            future.set_exception(exc)
            return
        except Exception as exc:
            logger.exception("Pattern %r failed to start", name)
            future.set_exception(exc)
            return

        # At most one transition: the in-flight one finishes first and its
        # incoming pattern becomes the outgoing one of the new transition.
        if self.transitions.is_transitioning():
            self.transitions.force_complete()

        if self.current is None:
            pattern.set_surface(self.surface)
            self.current = pattern
            self._debug("Switched to %r", name)
            settle(future, name)
            return

        if cfg.sync_to_beat and self.synchronizer is not None:
            beats = max(1, math.floor(float(cfg.duration) / self.synchronizer.beat_length_ms + 0.5))
            cfg = TransitionConfig(
                type=cfg.type,
                duration=self.synchronizer.beats_to_ms(beats),
                sync_to_beat=True,
                glitch_probability=cfg.glitch_probability,
            )
        self._debug("Transition %s -> %s (%s, %.0fms)", self.current.name, name, cfg.type, float(cfg.duration))
        self.transitions.start(self.current, pattern, cfg, future, now_ms=self.tick_source.now())

    def _on_transition_complete(self, pattern: Pattern) -> None:
        pattern.set_surface(self.surface)
        self.current = pattern

    def _drain_pending(self) -> None:
        while self._pending:
            name, transition, pattern_config, future = self._pending.pop(0)
            self._switch(name, transition, pattern_config, future)

    # ------------------------------------------------------------------ #
    # Animation control

    def start_animation(self) -> None:
        if self.tick_source.running:
            return
        self._last_time = self.tick_source.now()
        self.tick_source.start(self._tick)
        self._debug("Animation started")

    def stop_animation(self) -> None:
        if not self.tick_source.running:
            return
        self.tick_source.stop()
        self._debug("Animation stopped")

    def is_animating(self) -> bool:
        return self.tick_source.running

    def _tick(self, now_ms: float) -> None:
        delta = 0.0 if self._last_time is None else now_ms - self._last_time
        self._last_time = now_ms
        delta = max(0.0, min(delta, float(self.cfg.max_delta_ms)))
        self._in_tick = True
        try:
            self._frame(delta)
        finally:
            self._in_tick = False
        self._drain_pending()

    def _frame(self, delta_ms: float) -> None:
        self.monitor.update(delta_ms)
        if self.synchronizer is not None:
            self.synchronizer.update(delta_ms)

        if self.transitions.is_transitioning():
            self.transitions.advance(delta_ms)
        elif self.multi_layer and self.layers.has_layers():
            self.layers.update(delta_ms)
            self.layers.composite()
        elif self.current is not None:
            self.surface.fill(self.background)
            self.current.update(delta_ms)
            self.current.render()

    # ------------------------------------------------------------------ #
    # Layers

    def enable_multi_layer(self, enabled: bool = True) -> None:
        self.multi_layer = bool(enabled)
        self._debug("Multi-layer mode %s", "on" if self.multi_layer else "off")

    def add_pattern_to_layer(
        self,
        layer_name: str,
        pattern_name: str,
        transition: Any = None,
        pattern_config: Optional[Mapping[str, Any]] = None,
    ) -> Future:
        return self.layers.add_pattern_to_layer(layer_name, pattern_name, transition, pattern_config)

    def apply_layer_effect(self, layer_name: str, kind: str, param: Optional[float] = None) -> None:
        self.layers.apply_layer_effect(layer_name, kind, param)

    def animate_layer(self, layer_name: str, prop: str, target: float, duration: float) -> Future:
        return self.layers.animate_layer(layer_name, prop, target, duration)

    # ------------------------------------------------------------------ #
    # Config / adaptive quality

    def update_config(self, **changes: Any) -> None:
        merged = asdict(self.cfg)
        merged.update(changes)
        new_cfg = EngineConfig.from_mapping(merged)
        old_cfg, self.cfg = self.cfg, new_cfg

        push: Dict[str, Any] = {}
        if new_cfg.background_color != old_cfg.background_color:
            self.background = to_rgb(new_cfg.background_color)
            self.transitions.background = self.background
            self.layers.background = self.background
            push["background_color"] = new_cfg.background_color
        font_changed = any(getattr(new_cfg, k) != getattr(old_cfg, k) for k in FONT_KEYS)
        if font_changed:
            push.update({k: getattr(new_cfg, k) for k in FONT_KEYS})
        if new_cfg.target_fps != old_cfg.target_fps:
            self.monitor.config.target_fps = new_cfg.target_fps
            if isinstance(self.tick_source, ClockTickSource):
                self.tick_source.fps = new_cfg.target_fps

        if push:
            for pattern in self._live_patterns():
                pattern.set_config(push)
        if font_changed:
            self.resize(*self.surface.get_size(), surface=self.surface)
        self._debug("Engine config updated: %s", sorted(changes))

    def _on_store_change(self, changed: Dict[str, Any]) -> None:
        for pattern in self._live_patterns():
            pattern.set_config(changed)

    def _on_metrics(self, metrics: PerformanceMetrics) -> None:
        level = metrics.degradation_level
        if level == self._degradation:
            return
        logger.warning("Quality level changed %d -> %d", self._degradation, level)
        self._degradation = level
        self.layers.effects_enabled = level < 1
        for pattern in self._live_patterns():
            pattern.set_config({"degradation_level": level})

    def get_performance_metrics(self) -> PerformanceMetrics:
        return self.monitor.get_metrics()

    def attach_synchronizer(self, synchronizer: Optional[PatternSynchronizer]) -> None:
        self.synchronizer = synchronizer

    # ------------------------------------------------------------------ #
    # Ownership helpers / teardown

    def _single_patterns(self) -> List[Pattern]:
        if self.transitions.is_transitioning():
            return self.transitions.patterns()
        return [self.current] if self.current is not None else []

    def _live_patterns(self) -> List[Pattern]:
        return self._single_patterns() + self.layers.live_patterns()

    def cleanup(self) -> None:
        """Stop ticking and dispose of every owned pattern exactly once."""
        self.stop_animation()
        pending, self._pending = self._pending, []
        for *_, future in pending:
            future.cancel()
        if self.transitions.is_transitioning():
            self.transitions.abort()
        elif self.current is not None:
            self.current.cleanup()
        self.current = None
        self.layers.cleanup()
        self.monitor.remove_callback(self._on_metrics)
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.registry.clear()
        self._debug("Engine cleaned up")
