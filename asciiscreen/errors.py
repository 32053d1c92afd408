"""Error taxonomy for the pattern engine."""
from __future__ import annotations


class AsciiScreenError(Exception):
    """Base class for every error raised by asciiscreen."""


class PatternNotFoundError(AsciiScreenError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Pattern not found: {name}")
        self.name = name


class InvalidTransitionConfigError(AsciiScreenError):
    """Unsupported transition type or a non-positive duration."""


class LayerNotFoundError(AsciiScreenError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Layer not found: {name}")
        self.name = name
