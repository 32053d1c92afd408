"""PerformanceMonitor sampling, hysteresis and callbacks."""

import pytest

from asciiscreen.performance import PerformanceConfig, PerformanceMonitor, process_memory_mb


def _feed(monitor, frame_ms, count):
    for _ in range(count):
        monitor.update(frame_ms)


def test_steady_60fps_average(monitor):
    _feed(monitor, 16.67, 120)
    metrics = monitor.get_metrics()
    assert metrics.average_fps == pytest.approx(60, abs=1)
    assert not metrics.is_performance_degraded
    assert metrics.degradation_level == 0


def test_sustained_slow_frames_degrade(monitor):
    _feed(monitor, 40, 90)
    metrics = monitor.get_metrics()
    assert metrics.is_performance_degraded
    assert metrics.degradation_level >= 1
    assert metrics.average_fps == pytest.approx(25)


def test_a_short_burst_of_slow_frames_does_not_degrade(monitor):
    _feed(monitor, 16.67, 60)
    _feed(monitor, 40, 10)
    assert not monitor.get_metrics().is_performance_degraded


def test_cooldown_limits_how_fast_levels_climb(monitor):
    # 30 samples * 40 ms = 1.2 s to the first step, then 2 s of cooldown
    _feed(monitor, 40, 60)
    assert monitor.get_metrics().degradation_level == 1
    _feed(monitor, 40, 50)
    assert monitor.get_metrics().degradation_level == 2


def test_level_is_capped(monitor):
    _feed(monitor, 100, 2000)
    assert monitor.get_metrics().degradation_level == monitor.config.max_degradation_level


def test_recovery_steps_back_down(monitor):
    _feed(monitor, 40, 40)
    assert monitor.get_metrics().degradation_level == 1
    _feed(monitor, 16.67, 200)
    metrics = monitor.get_metrics()
    assert metrics.degradation_level == 0
    assert not metrics.is_performance_degraded


def test_high_memory_counts_as_pressure():
    monitor = PerformanceMonitor(PerformanceConfig(memory_threshold_mb=100), memory_reader=lambda: 400.0)
    _feed(monitor, 16.67, 40)
    metrics = monitor.get_metrics()
    assert metrics.memory_usage_mb == 400.0
    assert metrics.is_performance_degraded
    assert any("pattern cleanup" in r for r in monitor.get_recommendations())


def test_memory_is_sampled_on_an_interval():
    calls = []

    def read_memory():
        calls.append(1)
        return 12.0

    monitor = PerformanceMonitor(PerformanceConfig(memory_interval_ms=1000), memory_reader=read_memory)
    _feed(monitor, 100, 25)  # 2.5 s of monitor time
    assert len(calls) == 3


def test_callbacks_receive_snapshots_and_failures_are_isolated(monitor, caplog):
    seen = []

    def broken(_metrics):
        raise RuntimeError("bad listener")

    monitor.add_callback(broken)
    monitor.add_callback(seen.append)
    _feed(monitor, 20, 3)

    assert len(seen) == 3
    assert seen[0] is not seen[1]
    assert "Performance callback failed" in caplog.text

    monitor.remove_callback(seen.append)
    _feed(monitor, 20, 1)
    assert len(seen) == 3


def test_force_degradation_and_reset(monitor):
    monitor.force_degradation(7)
    assert monitor.get_metrics().degradation_level == 3
    assert monitor.get_metrics().is_performance_degraded
    monitor.force_degradation(-2)
    assert monitor.get_metrics().degradation_level == 0

    monitor.force_degradation(2)
    monitor.reset()
    metrics = monitor.get_metrics()
    assert metrics.degradation_level == 0
    assert metrics.average_fps == 0


def test_recommendations_for_low_fps(monitor):
    assert monitor.get_recommendations() == []
    _feed(monitor, 40, 5)
    recs = monitor.get_recommendations()
    assert any("reducing pattern complexity" in r for r in recs)
    assert any("Frame time is high" in r for r in recs)


def test_zero_delta_is_ignored(monitor):
    monitor.update(0)
    monitor.update(-5)
    assert monitor.get_metrics().fps == 0


def test_summary_and_export(monitor):
    _feed(monitor, 16.67, 5)
    assert monitor.get_performance_summary().startswith("FPS: 60.0")
    data = monitor.export_data()
    assert data["config"]["target_fps"] == 60
    assert len(data["frame_times"]) == 5
    assert data["metrics"]["degradation_level"] == 0


def test_default_memory_reader_reports_megabytes():
    assert process_memory_mb() >= 0.0
