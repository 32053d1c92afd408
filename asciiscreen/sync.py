from __future__ import annotations

"""
Tempo clock.

The master clock is kept in milliseconds and advanced only by update(); the
beat position is kept in (fractional) beats so a tempo change mid-stream
never skips or repeats a boundary. Every boundary crossed by an update fires
its own events, oldest first: beat, then measure (every 4 beats), then
phrase (every 4 measures).
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from asciiscreen.patterns.base import Pattern

logger = logging.getLogger(__name__)

MIN_TEMPO = 60.0
MAX_TEMPO = 200.0
BEATS_PER_MEASURE = 4
MEASURES_PER_PHRASE = 4
SYNC_MODES = ("strict", "loose", "independent")


@dataclass(frozen=True)
class SyncEvent:
    type: str  # "beat" | "measure" | "phrase"
    timestamp: float  # master clock ms of the boundary itself
    beat: int
    measure: int
    phrase: int


@dataclass(frozen=True)
class TimingInfo:
    master_clock: float
    beat: int
    measure: int
    phrase: int
    beat_phase: float


@dataclass
class SyncConfig:
    sync_mode: str = "loose"
    phase_offset: float = 0.0  # 0..1 of a beat
    quantization: int = 4  # strict mode steps in 1/quantization beats


@dataclass
class _Registration:
    pattern: Pattern
    config: SyncConfig
    carry: float = 0.0  # strict mode: time not yet released to the pattern


SyncCallback = Callable[[SyncEvent], None]


def _clamp_tempo(bpm: float) -> float:
    return max(MIN_TEMPO, min(MAX_TEMPO, float(bpm)))


class PatternSynchronizer:
    def __init__(self, tempo: float = 120.0) -> None:
        self.tempo = _clamp_tempo(tempo)
        self.running = True
        self.master_clock = 0.0
        self._position = 0.0  # beats since start
        self.beat = 0
        self.measure = 0
        self.phrase = 0
        self._callbacks: List[SyncCallback] = []
        self._scheduled: List[Tuple[int, Callable[[], None]]] = []
        self._patterns: Dict[str, _Registration] = {}

    @property
    def beat_length_ms(self) -> float:
        return 60000.0 / self.tempo

    # ---- control ------------------------------------------------------------

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def reset(self) -> None:
        self.master_clock = 0.0
        self._position = 0.0
        self.beat = self.measure = self.phrase = 0
        for reg in self._patterns.values():
            reg.carry = 0.0

    def set_tempo(self, bpm: float) -> None:
        self.tempo = _clamp_tempo(bpm)

    def get_tempo(self) -> float:
        return self.tempo

    # ---- listeners ----------------------------------------------------------

    def on_sync(self, callback: SyncCallback) -> None:
        self._callbacks.append(callback)

    def off_sync(self, callback: SyncCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def schedule_callback(self, target_beat: int, callback: Callable[[], None]) -> None:
        """Run callback from update() once the beat counter reaches target_beat."""
        if self.beat >= target_beat:
            self._run_scheduled(callback)
            return
        self._scheduled.append((int(target_beat), callback))

    def register_pattern(self, name: str, pattern: Pattern, config: SyncConfig | None = None) -> None:
        cfg = config or SyncConfig()
        if cfg.sync_mode not in SYNC_MODES:
            raise ValueError(f"Unsupported sync mode: {cfg.sync_mode!r}")
        self._patterns[name] = _Registration(pattern, cfg)

    def unregister_pattern(self, name: str) -> None:
        self._patterns.pop(name, None)

    # ---- clock --------------------------------------------------------------

    def update(self, delta_ms: float) -> None:
        if not self.running or delta_ms <= 0:
            return
        start_clock = self.master_clock
        start_position = self._position
        beat_len = self.beat_length_ms

        self.master_clock += delta_ms
        self._position += delta_ms / beat_len

        for boundary in range(self.beat + 1, int(math.floor(self._position)) + 1):
            at = start_clock + (boundary - start_position) * beat_len
            self._cross(boundary, at)

        if self._scheduled:
            due = [cb for (target, cb) in self._scheduled if target <= self.beat]
            self._scheduled = [(t, cb) for (t, cb) in self._scheduled if t > self.beat]
            for cb in due:
                self._run_scheduled(cb)

        self._drive_patterns(delta_ms)

    def _cross(self, boundary: int, at: float) -> None:
        self.beat = boundary
        self._emit("beat", at)
        if boundary % BEATS_PER_MEASURE == 0:
            self.measure = boundary // BEATS_PER_MEASURE
            self._emit("measure", at)
            if self.measure % MEASURES_PER_PHRASE == 0:
                self.phrase = self.measure // MEASURES_PER_PHRASE
                self._emit("phrase", at)

    def _emit(self, kind: str, at: float) -> None:
        event = SyncEvent(kind, at, self.beat, self.measure, self.phrase)
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception("Sync callback failed on %s %d", kind, self.beat)

    def _run_scheduled(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Scheduled beat callback failed")

    def _drive_patterns(self, delta_ms: float) -> None:
        beat_len = self.beat_length_ms
        for reg in self._patterns.values():
            cfg = reg.config
            if cfg.sync_mode == "strict":
                quantum = beat_len / max(1, cfg.quantization)
                reg.carry += delta_ms
                steps = math.floor(reg.carry / quantum)
                if steps <= 0:
                    continue
                adjusted = steps * quantum
                reg.carry -= adjusted
            elif cfg.sync_mode == "loose":
                adjusted = delta_ms * (1 + math.sin(self.beat_phase * math.pi * 2) * 0.1)
            else:
                adjusted = delta_ms
            if cfg.phase_offset:
                adjusted += cfg.phase_offset * beat_len * 0.01
            reg.pattern.update(adjusted)

    # ---- queries ------------------------------------------------------------

    @property
    def beat_phase(self) -> float:
        phase = self._position - math.floor(self._position)
        return phase if phase < 1.0 else 0.0

    def get_timing_info(self) -> TimingInfo:
        return TimingInfo(
            master_clock=self.master_clock,
            beat=self.beat,
            measure=self.measure,
            phrase=self.phrase,
            beat_phase=self.beat_phase,
        )

    @property
    def grid_origin_ms(self) -> float:
        """Clock time of beat 0 on the current tempo's grid."""
        return self.master_clock - self._position * self.beat_length_ms

    def quantize(self, value_ms: float, subdivision: int = 4) -> float:
        """Snap a master-clock timestamp to the nearest 1/subdivision beat line.

        Lines are laid out from the grid origin, so after a tempo change they
        still fall on the boundaries update() reports.
        """
        step = self.beat_length_ms / max(1, subdivision)
        origin = self.grid_origin_ms
        return origin + math.floor((value_ms - origin) / step + 0.5) * step

    def beats_to_ms(self, beats: float) -> float:
        return beats * self.beat_length_ms

    def cleanup(self) -> None:
        self.stop()
        self._patterns.clear()
        self._callbacks.clear()
        self._scheduled.clear()
