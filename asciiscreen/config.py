from __future__ import annotations

"""
Configuration objects consumed by the engine.

EngineConfig describes the drawing setup (font, colors, debug flag) and is a
plain dataclass, the same way the game config always was. ConfigStore holds
the user-facing pattern options; it is constructed explicitly and passed by
reference to whoever needs it. Nothing here writes to disk.
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)


SPEED_MULTIPLIERS: Dict[str, float] = {"slow": 0.5, "medium": 1.0, "fast": 2.0}
DENSITY_MULTIPLIERS: Dict[str, float] = {"low": 0.3, "medium": 0.6, "high": 1.0}
COMPLEXITY_LEVELS = ("low", "medium", "high")
THEMES = ("matrix", "terminal", "retro", "blue")

DEFAULT_PATTERN_CONFIG: Dict[str, Any] = {
    "characters": "01",
    "speed": "medium",
    "density": "medium",
    "current_theme": "matrix",
    "glitch_probability": 0.02,
    "complexity": "medium",
}


@dataclass
class EngineConfig:
    font_size: int = 12
    font_family: str = "Courier New, Monaco, Consolas, monospace"
    background_color: str = "#000000"
    foreground_color: str = "#00ff00"
    enable_debug: bool = False
    max_delta_ms: float = 100.0  # clamp after a stalled/suspended host
    line_height: float = 1.2
    target_fps: int = 60

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "EngineConfig":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key in known:
                kwargs[key] = value
            else:
                logger.warning("Ignoring unknown engine option %r", key)
        return cls(**kwargs)


def validate_pattern_options(partial: Mapping[str, Any]) -> None:
    """Raise ValueError for enumerated options holding an unsupported value."""
    checks = {
        "speed": SPEED_MULTIPLIERS,
        "density": DENSITY_MULTIPLIERS,
        "complexity": COMPLEXITY_LEVELS,
        "current_theme": THEMES,
    }
    for key, allowed in checks.items():
        if key in partial and partial[key] not in allowed:
            raise ValueError(f"Unsupported {key}: {partial[key]!r}")
    prob = partial.get("glitch_probability")
    if prob is not None and not 0.0 <= float(prob) <= 1.0:
        raise ValueError(f"glitch_probability out of range: {prob!r}")
    if "characters" in partial and not partial["characters"]:
        raise ValueError("characters must not be empty")


StoreListener = Callable[[Dict[str, Any]], None]


class ConfigStore:
    """
    Explicitly constructed pattern configuration store.

    update() is a shallow merge; listeners receive only the keys whose value
    actually changed. Persistence is somebody else's job.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = dict(DEFAULT_PATTERN_CONFIG)
        self._listeners: List[StoreListener] = []
        if values:
            validate_pattern_options(values)
            self._values.update(values)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ConfigStore":
        store = cls()
        store.load_yaml(path)
        return store

    def load_yaml(self, path: Path | str) -> Dict[str, Any]:
        yaml_path = Path(path)
        if not yaml_path.exists():
            logger.info("No config file at %s; keeping defaults.", yaml_path)
            return {}
        with yaml_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{yaml_path} must contain a mapping, got {type(data).__name__}")
        return self.update(data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._values)

    def update(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        validate_pattern_options(partial)
        changed = {k: v for k, v in partial.items() if self._values.get(k, object()) != v}
        if not changed:
            return {}
        self._values.update(changed)
        for listener in list(self._listeners):
            try:
                listener(dict(changed))
            except Exception:
                logger.exception("Config listener failed")
        return changed

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
