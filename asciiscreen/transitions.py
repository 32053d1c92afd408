"""Timed blends between two pattern instances."""
from __future__ import annotations

import logging
import math
from concurrent.futures import Future
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import pygame

from asciiscreen.errors import InvalidTransitionConfigError
from asciiscreen.patterns.base import Pattern
from asciiscreen.rng import RNG, new_rng
from asciiscreen.visuals import IDENTITY, apply_visual_panel

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]


@dataclass
class TransitionConfig:
    type: str = "fade"
    duration: float = 1000.0  # ms
    sync_to_beat: bool = False
    glitch_probability: float = 0.35

    def validate(self) -> None:
        if self.type not in TRANSITION_EFFECTS:
            raise InvalidTransitionConfigError(f"Unsupported transition type: {self.type!r}")
        try:
            duration = float(self.duration)
        except (TypeError, ValueError):
            raise InvalidTransitionConfigError(f"Transition duration must be a number: {self.duration!r}") from None
        if not duration > 0:
            raise InvalidTransitionConfigError(f"Transition duration must be positive: {self.duration!r}")

    @classmethod
    def coerce(cls, value: Union[None, str, Mapping[str, Any], "TransitionConfig"]) -> "TransitionConfig":
        """Accept a config, a bare effect name or a mapping."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(type=value)
        if isinstance(value, Mapping):
            known = {"type", "duration", "sync_to_beat", "glitch_probability"}
            unknown = set(value) - known
            if unknown:
                raise InvalidTransitionConfigError(f"Unknown transition options: {sorted(unknown)}")
            return cls(**dict(value))
        raise InvalidTransitionConfigError(f"Cannot build a transition config from {value!r}")


@dataclass
class TransitionState:
    type: str = "idle"  # "idle" | "transitioning"
    effect: str = ""
    progress: float = 0.0
    duration: float = 0.0
    from_pattern: Optional[str] = None
    to_pattern: Optional[str] = None
    start_time: Optional[float] = None
    elapsed: float = 0.0


@dataclass
class TransitionFrame:
    """Everything an effect needs to draw one blended frame."""
    target: pygame.Surface
    from_surface: pygame.Surface
    to_surface: pygame.Surface
    snapshot: pygame.Surface  # what was on screen when the transition began
    background: RGB
    cell_width: int
    cell_height: int
    rng: RNG
    glitch_probability: float

    @property
    def rect(self) -> pygame.Rect:
        return self.target.get_rect()


def ease_in_out_cubic(t: float) -> float:
    if t < 0.5:
        return 4 * t * t * t
    return 1 - math.pow(-2 * t + 2, 3) / 2


# ---------------------------------------------------------------------------
# Effect registry
# ---------------------------------------------------------------------------

EffectRenderer = Callable[[TransitionFrame, float], None]


@dataclass
class TransitionEffectDef:
    name: str
    render: Optional[EffectRenderer]  # None means an instant cut


TRANSITION_EFFECTS: Dict[str, TransitionEffectDef] = {}


def register_transition_effect(defn: TransitionEffectDef) -> None:
    TRANSITION_EFFECTS[defn.name] = defn


def _fade(frame: TransitionFrame, p: float) -> None:
    rect = frame.rect
    apply_visual_panel(frame.target, frame.from_surface, rect, IDENTITY.with_changes(alpha=1 - p))
    apply_visual_panel(frame.target, frame.to_surface, rect, IDENTITY.with_changes(alpha=p))


def _slide(frame: TransitionFrame, p: float) -> None:
    rect = frame.rect
    offset = rect.width * p
    apply_visual_panel(frame.target, frame.from_surface, rect, IDENTITY.with_changes(offset_x=-offset))
    apply_visual_panel(frame.target, frame.to_surface, rect, IDENTITY.with_changes(offset_x=rect.width - offset))


def _morph(frame: TransitionFrame, p: float) -> None:
    rect = frame.rect
    rng = frame.rng
    jitter = (1 - p) * frame.cell_width * 2

    def wobble(amount: float) -> Tuple[float, float]:
        if amount <= 0:
            return 0.0, 0.0
        return rng.uniform(-amount, amount), rng.uniform(-amount, amount)

    fx, fy = wobble(jitter)
    tx, ty = wobble(jitter * 0.5)
    apply_visual_panel(frame.target, frame.from_surface, rect,
                       IDENTITY.with_changes(alpha=1 - p, offset_x=fx, offset_y=fy))
    apply_visual_panel(frame.target, frame.to_surface, rect,
                       IDENTITY.with_changes(alpha=p, offset_x=tx, offset_y=ty))


def _displacement(frame: TransitionFrame, p: float) -> None:
    width, height = frame.target.get_size()
    band = max(1, frame.cell_height)
    strength = (1 - p) * max(frame.cell_width * 4, width * 0.05)
    if strength < 0.5:
        frame.target.blit(frame.to_surface, (0, 0))
        return

    # Brightness of each horizontal band of the old frame drives its shift.
    levels: List[float] = []
    for y in range(0, height, band):
        area = pygame.Rect(0, y, width, min(band, height - y))
        r, g, b, *_ = pygame.transform.average_color(frame.snapshot, area)
        levels.append((r + g + b) / 765.0)
    peak = max(levels) if levels else 0.0

    for i, y in enumerate(range(0, height, band)):
        area = pygame.Rect(0, y, width, min(band, height - y))
        d = levels[i] / peak if peak > 0 else 0.5
        shift = int((d * 2 - 1) * strength)
        frame.target.blit(frame.to_surface, (shift, y), area)
        if shift > 0:
            frame.target.blit(frame.to_surface, (shift - width, y), area)
        elif shift < 0:
            frame.target.blit(frame.to_surface, (shift + width, y), area)


def _glitch(frame: TransitionFrame, p: float) -> None:
    frame.target.blit(frame.to_surface, (0, 0))
    probability = frame.glitch_probability * (1 - p)
    if probability <= 0:
        return
    width, height = frame.target.get_size()
    cw, ch = max(1, frame.cell_width), max(1, frame.cell_height)
    blocks = max(1, width // cw) * max(1, height // ch)
    rng = frame.rng
    count = min(2000, int(blocks * probability))
    for _ in range(count):
        bw = cw * rng.randint(1, 4)
        x = rng.randrange(0, max(1, width))
        y = rng.randrange(0, max(1, height // ch)) * ch
        area = pygame.Rect(x, y, bw, ch)
        if rng.random() < 0.5:
            frame.target.blit(frame.from_surface, (x, y), area)
        else:
            dx = int(rng.uniform(-3, 3) * cw)
            frame.target.blit(frame.to_surface, (x + dx, y), area)


def _rotate3d(frame: TransitionFrame, p: float) -> None:
    scale = math.cos(p * math.pi)
    source = frame.from_surface if scale >= 0 else frame.to_surface
    depth = abs(scale)
    apply_visual_panel(frame.target, source, frame.rect,
                       IDENTITY.with_changes(scale_x=max(depth, 0.001), alpha=0.4 + 0.6 * depth))


def _install_builtin_effects() -> None:
    register_transition_effect(TransitionEffectDef("fade", _fade))
    register_transition_effect(TransitionEffectDef("slide", _slide))
    register_transition_effect(TransitionEffectDef("morph", _morph))
    register_transition_effect(TransitionEffectDef("displacement", _displacement))
    register_transition_effect(TransitionEffectDef("glitch", _glitch))
    register_transition_effect(TransitionEffectDef("rotate3d", _rotate3d))
    register_transition_effect(TransitionEffectDef("none", None))


_install_builtin_effects()


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

def settle(future: Optional[Future], result: Any = None, error: Optional[BaseException] = None) -> None:
    """Resolve or reject a future unless it is already done or cancelled."""
    if future is None or future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


class TransitionManager:
    """
    idle -> transitioning -> idle.

    While transitioning, the manager owns both patterns: each renders into
    its own offscreen surface and the effect composites them onto the
    target. progress = elapsed / duration, clamped to 1; completion cleans up
    the outgoing pattern, hands the incoming one to on_complete and resolves
    the future, in that order.
    """

    def __init__(
        self,
        surface: pygame.Surface,
        *,
        background: RGB = (0, 0, 0),
        on_complete: Optional[Callable[[Pattern], None]] = None,
        rng: Optional[RNG] = None,
        cell_size: Tuple[int, int] = (8, 14),
    ) -> None:
        self.target = surface
        self.background = background
        self.on_complete = on_complete
        self.rng = rng or new_rng()
        self.cell_size = cell_size
        self.state = TransitionState()
        self._config = TransitionConfig()
        self._from: Optional[Pattern] = None
        self._to: Optional[Pattern] = None
        self._future: Optional[Future] = None
        self._from_surface: Optional[pygame.Surface] = None
        self._to_surface: Optional[pygame.Surface] = None
        self._snapshot: Optional[pygame.Surface] = None

    # ---- queries ----------------------------------------------------------

    def is_transitioning(self) -> bool:
        return self.state.type == "transitioning"

    def get_state(self) -> TransitionState:
        return replace(self.state)

    @property
    def from_pattern(self) -> Optional[Pattern]:
        return self._from

    @property
    def to_pattern(self) -> Optional[Pattern]:
        return self._to

    def patterns(self) -> List[Pattern]:
        return [p for p in (self._from, self._to) if p is not None]

    # ---- lifecycle --------------------------------------------------------

    def start(
        self,
        from_pattern: Pattern,
        to_pattern: Pattern,
        config: TransitionConfig,
        future: Optional[Future] = None,
        now_ms: float = 0.0,
    ) -> None:
        config.validate()
        if self.is_transitioning():
            self.force_complete()

        self._config = config
        self._from = from_pattern
        self._to = to_pattern
        self._future = future
        self._snapshot = self.target.copy()
        self._allocate_surfaces()
        from_pattern.set_surface(self._from_surface)
        to_pattern.set_surface(self._to_surface)
        self.state = TransitionState(
            type="transitioning",
            effect=config.type,
            progress=0.0,
            duration=float(config.duration),
            from_pattern=getattr(from_pattern, "name", None),
            to_pattern=getattr(to_pattern, "name", None),
            start_time=now_ms,
            elapsed=0.0,
        )
        if TRANSITION_EFFECTS[config.type].render is None:
            self.force_complete()

    def advance(self, delta_ms: float) -> bool:
        """Step and draw one frame; True when this call completed the transition."""
        if not self.is_transitioning():
            return False
        state = self.state
        state.elapsed += max(0.0, float(delta_ms))
        state.progress = max(state.progress, min(1.0, state.elapsed / state.duration))

        self._from.update(delta_ms)
        self._to.update(delta_ms)
        self._render_frame(state.progress)

        if state.progress >= 1.0:
            self._complete()
            return True
        return False

    def force_complete(self) -> Optional[Pattern]:
        """Jump to progress 1 and finish now. Returns the pattern that took over."""
        if not self.is_transitioning():
            return None
        self.state.progress = 1.0
        to_pattern = self._to
        self._complete()
        return to_pattern

    def abort(self) -> None:
        """Tear down without a winner: both patterns are cleaned up and the future is cancelled."""
        if not self.is_transitioning():
            return
        for pattern in self.patterns():
            pattern.cleanup()
        future = self._future
        self._reset()
        if future is not None:
            future.cancel()

    def resize(self, surface: pygame.Surface, cell_size: Optional[Tuple[int, int]] = None) -> None:
        self.target = surface
        if cell_size is not None:
            self.cell_size = cell_size
        if self.is_transitioning():
            if self._snapshot is not None:
                self._snapshot = pygame.transform.scale(self._snapshot, surface.get_size())
            self._allocate_surfaces()
            self._from.set_surface(self._from_surface)
            self._to.set_surface(self._to_surface)

    # ---- internals --------------------------------------------------------

    def _allocate_surfaces(self) -> None:
        size = self.target.get_size()
        self._from_surface = pygame.Surface(size)
        self._to_surface = pygame.Surface(size)

    def _render_frame(self, progress: float) -> None:
        for pattern, surf in ((self._from, self._from_surface), (self._to, self._to_surface)):
            surf.fill(self.background)
            pattern.render()
        self.target.fill(self.background)
        effect = TRANSITION_EFFECTS[self.state.effect]
        frame = TransitionFrame(
            target=self.target,
            from_surface=self._from_surface,
            to_surface=self._to_surface,
            snapshot=self._snapshot,
            background=self.background,
            cell_width=self.cell_size[0],
            cell_height=self.cell_size[1],
            rng=self.rng,
            glitch_probability=self._config.glitch_probability,
        )
        effect.render(frame, ease_in_out_cubic(progress))

    def _complete(self) -> None:
        from_pattern, to_pattern, future = self._from, self._to, self._future
        from_pattern.cleanup()
        if self.on_complete is not None:
            self.on_complete(to_pattern)
        self._reset()
        logger.debug("Transition to %s complete", getattr(to_pattern, "name", to_pattern))
        settle(future, getattr(to_pattern, "name", None))

    def _reset(self) -> None:
        self.state = TransitionState()
        self._from = None
        self._to = None
        self._future = None
        self._from_surface = None
        self._to_surface = None
        self._snapshot = None
