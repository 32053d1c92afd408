from asciiscreen.config import ConfigStore, EngineConfig
from asciiscreen.engine import Engine
from asciiscreen.errors import (
    AsciiScreenError,
    InvalidTransitionConfigError,
    LayerNotFoundError,
    PatternNotFoundError,
)
from asciiscreen.transitions import TransitionConfig

__all__ = [
    "AsciiScreenError",
    "ConfigStore",
    "Engine",
    "EngineConfig",
    "InvalidTransitionConfigError",
    "LayerNotFoundError",
    "PatternNotFoundError",
    "TransitionConfig",
]
