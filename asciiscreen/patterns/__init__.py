from typing import Dict

from asciiscreen.patterns.base import Pattern, PatternFactory, PatternKit
from asciiscreen.patterns.binary_waves import BinaryWaves
from asciiscreen.patterns.conway import ConwayLife
from asciiscreen.patterns.mandelbrot import MandelbrotASCII
from asciiscreen.patterns.matrix_rain import MatrixRain

# Registered by the engine at construction.
BUILTIN_PATTERNS: Dict[str, PatternFactory] = {
    "matrix-rain": MatrixRain,
    "binary-waves": BinaryWaves,
    "conway-life": ConwayLife,
    "mandelbrot": MandelbrotASCII,
}

__all__ = [
    "BUILTIN_PATTERNS",
    "BinaryWaves",
    "ConwayLife",
    "MandelbrotASCII",
    "MatrixRain",
    "Pattern",
    "PatternFactory",
    "PatternKit",
]
