from __future__ import annotations

"""
Frame-rate and memory watchdog driving adaptive quality.

update(delta_ms) is called once per engine tick. Each call records one fps
sample into a rolling window; memory is sampled on a coarser interval of
accumulated monitor time. The degradation level moves one step at a time and
only after a run of consecutive bad (or good) samples, with a cooldown
between moves, so a single slow frame never flips the quality level.
"""

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Deque, Dict, List, Optional

import psutil

logger = logging.getLogger(__name__)


@dataclass
class PerformanceConfig:
    target_fps: int = 60
    min_fps: int = 30
    memory_threshold_mb: float = 512.0
    sample_size: int = 60
    degradation_threshold: float = 45.0
    recovery_margin: float = 5.0
    min_samples_for_action: int = 30
    cooldown_ms: float = 2000.0
    max_degradation_level: int = 3
    memory_interval_ms: float = 1000.0
    enable_memory_monitoring: bool = True
    enable_auto_optimization: bool = True


@dataclass
class PerformanceMetrics:
    fps: float = 0.0
    average_fps: float = 0.0
    frame_time: float = 0.0
    memory_usage_mb: float = 0.0
    degradation_level: int = 0
    is_performance_degraded: bool = False


MetricsCallback = Callable[[PerformanceMetrics], None]
MemoryReader = Callable[[], float]


def process_memory_mb() -> float:
    """Resident set size of this process in MB, 0 when the platform won't say."""
    try:
        return psutil.Process().memory_info().rss / (1024 * 1024)
    except (psutil.Error, OSError):
        return 0.0


class PerformanceMonitor:
    def __init__(
        self,
        config: Optional[PerformanceConfig] = None,
        memory_reader: Optional[MemoryReader] = None,
    ) -> None:
        self.config = config or PerformanceConfig()
        self.memory_reader = memory_reader or process_memory_mb
        self._callbacks: List[MetricsCallback] = []
        self.reset()

    def reset(self) -> None:
        self._samples: Deque[float] = deque(maxlen=max(1, self.config.sample_size))
        self._frame_times: Deque[float] = deque(maxlen=max(1, self.config.sample_size))
        self.metrics = PerformanceMetrics()
        self._clock = 0.0
        self._last_action: Optional[float] = None
        self._last_memory: Optional[float] = None
        self._low_run = 0
        self._high_run = 0

    # ---- callbacks ------------------------------------------------------------

    def add_callback(self, callback: MetricsCallback) -> None:
        self._callbacks.append(callback)

    def remove_callback(self, callback: MetricsCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback(self.get_metrics())
            except Exception:
                logger.exception("Performance callback failed")

    # ---- sampling -------------------------------------------------------------

    def update(self, delta_ms: float) -> None:
        if delta_ms <= 0:
            return
        cfg = self.config
        self._clock += delta_ms
        fps = min(1000.0 / delta_ms, float(cfg.target_fps))
        self._samples.append(fps)
        self._frame_times.append(delta_ms)

        m = self.metrics
        m.fps = fps
        m.frame_time = delta_ms
        m.average_fps = sum(self._samples) / len(self._samples)

        if cfg.enable_memory_monitoring and (
            self._last_memory is None or self._clock - self._last_memory >= cfg.memory_interval_ms
        ):
            self._last_memory = self._clock
            m.memory_usage_mb = float(self.memory_reader() or 0.0)
            if m.memory_usage_mb > cfg.memory_threshold_mb:
                logger.warning("Memory threshold exceeded: %.1fMB", m.memory_usage_mb)

        if cfg.enable_auto_optimization:
            self._check()
        self._notify()

    def _under_pressure(self) -> bool:
        m = self.metrics
        if m.average_fps < self.config.degradation_threshold:
            return True
        return self.config.enable_memory_monitoring and m.memory_usage_mb > self.config.memory_threshold_mb

    def _recovered(self) -> bool:
        m = self.metrics
        cfg = self.config
        if m.average_fps <= cfg.degradation_threshold + cfg.recovery_margin:
            return False
        return not (cfg.enable_memory_monitoring and m.memory_usage_mb > cfg.memory_threshold_mb)

    def _check(self) -> None:
        cfg = self.config
        if self._under_pressure():
            self._low_run += 1
            self._high_run = 0
        elif self.metrics.degradation_level > 0 and self._recovered():
            self._high_run += 1
            self._low_run = 0
        else:
            self._low_run = self._high_run = 0

        if self._last_action is not None and self._clock - self._last_action < cfg.cooldown_ms:
            return

        level = self.metrics.degradation_level
        if self._low_run >= cfg.min_samples_for_action and level < cfg.max_degradation_level:
            self._set_level(level + 1)
            logger.warning(
                "Performance degradation triggered - level %d (avg fps %.1f)",
                level + 1, self.metrics.average_fps,
            )
        elif self._high_run >= cfg.min_samples_for_action and level > 0:
            self._set_level(level - 1)
            logger.info("Performance restored - level %d (avg fps %.1f)", level - 1, self.metrics.average_fps)

    def _set_level(self, level: int) -> None:
        self.metrics.degradation_level = level
        self.metrics.is_performance_degraded = level > 0
        self._last_action = self._clock
        self._low_run = self._high_run = 0

    # ---- queries / test hooks ---------------------------------------------------

    def get_metrics(self) -> PerformanceMetrics:
        return replace(self.metrics)

    def force_degradation(self, level: int) -> None:
        level = max(0, min(self.config.max_degradation_level, int(level)))
        self.metrics.degradation_level = level
        self.metrics.is_performance_degraded = level > 0
        logger.info("Performance degradation forced to level %d", level)
        self._notify()

    def get_recommendations(self) -> List[str]:
        m = self.metrics
        cfg = self.config
        out: List[str] = []
        if self._samples and m.average_fps < cfg.degradation_threshold:
            out.append("Consider reducing pattern complexity")
            out.append("Reduce animation speed")
        if m.memory_usage_mb > cfg.memory_threshold_mb * 0.8:
            out.append("Memory usage is high - consider pattern cleanup")
        if m.frame_time > 20:
            out.append("Frame time is high - optimize render loop")
        return out

    def get_performance_summary(self) -> str:
        m = self.metrics
        degraded = f"Level {m.degradation_level}" if m.is_performance_degraded else "No"
        return (
            f"FPS: {m.fps:.1f} (avg: {m.average_fps:.1f}) | "
            f"Memory: {m.memory_usage_mb:.1f}MB | Degraded: {degraded}"
        )

    def export_data(self) -> Dict[str, Any]:
        return {
            "config": asdict(self.config),
            "metrics": asdict(self.metrics),
            "frame_times": list(self._frame_times),
            "timestamp": time.time(),
            "recommendations": self.get_recommendations(),
        }
