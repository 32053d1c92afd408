"""EngineConfig and ConfigStore."""

import logging

import pytest

from asciiscreen.config import DEFAULT_PATTERN_CONFIG, ConfigStore, EngineConfig


def test_engine_config_defaults():
    cfg = EngineConfig()
    assert cfg.font_size == 12
    assert cfg.background_color == "#000000"
    assert cfg.foreground_color == "#00ff00"
    assert cfg.enable_debug is False


def test_engine_config_from_mapping_drops_unknown_keys(caplog):
    with caplog.at_level(logging.WARNING):
        cfg = EngineConfig.from_mapping({"font_size": 18, "fontSize": 3})
    assert cfg.font_size == 18
    assert "fontSize" in caplog.text


def test_store_is_not_a_singleton():
    a, b = ConfigStore(), ConfigStore()
    a.update({"speed": "fast"})
    assert b.get("speed") == "medium"


def test_store_update_is_a_shallow_merge():
    store = ConfigStore()
    store.update({"speed": "slow"})
    snap = store.snapshot()
    assert snap["speed"] == "slow"
    assert snap["density"] == DEFAULT_PATTERN_CONFIG["density"]
    snap["speed"] = "fast"
    assert store.get("speed") == "slow"


def test_listeners_receive_only_changed_keys():
    store = ConfigStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    assert store.update({"speed": "medium", "density": "high"}) == {"density": "high"}
    assert store.update({"density": "high"}) == {}
    unsubscribe()
    store.update({"speed": "fast"})

    assert seen == [{"density": "high"}]


def test_failing_listener_does_not_stop_others(caplog):
    store = ConfigStore()
    seen = []

    def broken(_changed):
        raise RuntimeError("listener")

    store.subscribe(broken)
    store.subscribe(seen.append)
    store.update({"current_theme": "retro"})

    assert seen == [{"current_theme": "retro"}]
    assert "Config listener failed" in caplog.text


@pytest.mark.parametrize(
    "bad",
    [
        {"speed": "ludicrous"},
        {"density": "extreme"},
        {"current_theme": "sepia"},
        {"complexity": "max"},
        {"glitch_probability": 1.5},
        {"characters": ""},
    ],
)
def test_invalid_values_are_rejected(bad):
    store = ConfigStore()
    with pytest.raises(ValueError):
        store.update(bad)
    assert store.snapshot() == DEFAULT_PATTERN_CONFIG


def test_load_yaml(tmp_path):
    path = tmp_path / "asciiscreen.yaml"
    path.write_text("speed: fast\ncurrent_theme: blue\n", encoding="utf-8")

    store = ConfigStore.from_yaml(path)

    assert store.get("speed") == "fast"
    assert store.get("current_theme") == "blue"


def test_missing_yaml_keeps_defaults(tmp_path):
    store = ConfigStore.from_yaml(tmp_path / "absent.yaml")
    assert store.snapshot() == DEFAULT_PATTERN_CONFIG


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        ConfigStore().load_yaml(path)
