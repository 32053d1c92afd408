"""Conway's Game of Life on the character grid."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import pygame

from asciiscreen.patterns.base import PatternKit
from asciiscreen.patterns.themes import age_color

logger = logging.getLogger(__name__)

# Generation interval (ms) and no-progress reseed interval (ms) per speed.
SPEED_TIMINGS: Dict[str, Tuple[float, float]] = {
    "slow": (500.0, 45000.0),
    "medium": (200.0, 30000.0),
    "fast": (100.0, 15000.0),
}

# Glyph ramp (young -> old) and max age per complexity.
COMPLEXITY_STYLES: Dict[str, Tuple[str, int]] = {
    "low": ("█▓▒░", 5),
    "medium": ("@#*o.", 10),
    "high": ("█▉▊▋▌▍▎▏", 15),
}

STABLE_GENERATION_LIMIT = 50

Shape = List[List[int]]

SHAPES: Dict[str, Shape] = {
    "glider": [
        [0, 1, 0],
        [0, 0, 1],
        [1, 1, 1],
    ],
    "blinker": [[1, 1, 1]],
    "toad": [
        [0, 1, 1, 1],
        [1, 1, 1, 0],
    ],
    "beacon": [
        [1, 1, 0, 0],
        [1, 1, 0, 0],
        [0, 0, 1, 1],
        [0, 0, 1, 1],
    ],
    "pulsar": [
        [0, 0, 1, 1, 1, 0, 0, 0, 1, 1, 1, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0],
        [1, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0, 1],
        [1, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0, 1],
        [1, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0, 1],
        [0, 0, 1, 1, 1, 0, 0, 0, 1, 1, 1, 0, 0],
        [0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 1, 1, 1, 0, 0, 0, 1, 1, 1, 0, 0],
        [1, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0, 1],
        [1, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0, 1],
        [1, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0, 1],
        [0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 1, 1, 1, 0, 0, 0, 1, 1, 1, 0, 0],
    ],
    "gosper_gun": [
        [0] * 24 + [1] + [0] * 11,
        [0] * 22 + [1, 0, 1] + [0] * 11,
        [0] * 12 + [1, 1] + [0] * 6 + [1, 1] + [0] * 12 + [1, 1],
        [0] * 11 + [1, 0, 0, 0, 1] + [0] * 4 + [1, 1] + [0] * 12 + [1, 1],
        [1, 1] + [0] * 8 + [1, 0, 0, 0, 0, 0, 1, 0, 0, 0, 1, 1] + [0] * 14,
        [1, 1] + [0] * 8 + [1, 0, 0, 0, 1, 0, 1, 1, 0, 0, 0, 0, 1, 0, 1] + [0] * 11,
        [0] * 10 + [1, 0, 0, 0, 0, 0, 1] + [0] * 7 + [1] + [0] * 11,
        [0] * 11 + [1, 0, 0, 0, 1] + [0] * 20,
        [0] * 12 + [1, 1] + [0] * 22,
    ],
}


@dataclass
class Cell:
    alive: bool = False
    age: int = 0


def _empty_grid(columns: int, rows: int) -> List[List[Cell]]:
    return [[Cell() for _ in range(columns)] for _ in range(rows)]


class ConwayLife:
    """
    Cellular automaton with a non-wrapping Moore neighbourhood.

    One generation is advanced per update_interval of accumulated time; a
    large delta advances several. If the population stays unchanged for
    STABLE_GENERATION_LIMIT generations, or reset_interval of time passes,
    the grid is reseeded so the display never freezes.
    """

    def __init__(self, surface: pygame.Surface, config: Optional[Mapping[str, Any]] = None) -> None:
        self.name = "conway-life"
        self.kit = PatternKit(surface, config, defaults={"show_info": True})
        self._initialized = False
        self._cells: List[List[Cell]] = []
        self._next: List[List[Cell]] = []
        self.generation = 0
        self.population = 0
        self.stable_generations = 0
        self.stable_generation_limit = STABLE_GENERATION_LIMIT
        self._update_timer = 0.0
        self._reset_timer = 0.0
        self.update_interval = 200.0
        self.reset_interval = 30000.0
        self.charset = COMPLEXITY_STYLES["medium"][0]
        self.max_age = COMPLEXITY_STYLES["medium"][1]
        self._apply_speed(self.kit.config.get("speed", "medium"))
        self._apply_complexity(self.kit.config.get("complexity", "medium"))

    # ---- contract ---------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        self._initialized = True
        self._reset_counters()
        self._build_grids()
        self.seed()

    def update(self, delta_ms: float) -> None:
        if not self._initialized:
            return
        delta = max(0.0, float(delta_ms))
        self._update_timer += delta
        self._reset_timer += delta
        while self._update_timer >= self.update_interval:
            self._update_timer -= self.update_interval
            self.step()
            if self.stable_generations >= self.stable_generation_limit:
                logger.debug("Population stable for %d generations; reseeding", self.stable_generations)
                self.reset_simulation()
                return
        if self._reset_timer >= self.reset_interval:
            self.reset_simulation()

    def render(self) -> None:
        if not self._initialized:
            return
        kit = self.kit
        kit.clear()
        theme = kit.config.get("current_theme")
        ramp = self.charset
        for y, row in enumerate(self._cells):
            for x, cell in enumerate(row):
                if not cell.alive:
                    continue
                ratio = min(cell.age / self.max_age, 1.0) if self.max_age else 0.0
                ch = ramp[min(len(ramp) - 1, int(ratio * (len(ramp) - 1)))]
                kit.draw_char(ch, x, y, age_color(theme, ratio))
        if kit.config.get("show_info", True) and kit.degradation_level() == 0:
            self._render_info_overlay()

    def cleanup(self) -> None:
        self._initialized = False
        self._cells = []
        self._next = []
        self._reset_counters()

    def on_resize(self, columns: int, rows: int) -> None:
        self.kit.resize(columns, rows)
        if self._initialized:
            self._build_grids()
            self.seed()

    def set_config(self, partial: Mapping[str, Any]) -> None:
        self.kit.merge_config(partial)
        if "speed" in partial:
            self._apply_speed(partial["speed"])
        if "complexity" in partial:
            self._apply_complexity(partial["complexity"])
            if self._initialized:
                self._clamp_ages()

    def get_config(self) -> Dict[str, Any]:
        return self.kit.get_config()

    def set_surface(self, surface: pygame.Surface) -> None:
        self.kit.surface = surface

    # ---- simulation -------------------------------------------------------

    def step(self) -> None:
        """Advance exactly one generation."""
        if not self._cells:
            return
        cur, nxt = self._cells, self._next
        rows = len(cur)
        columns = len(cur[0])
        population = 0
        for y in range(rows):
            for x in range(columns):
                n = self._count_neighbors(x, y, columns, rows)
                cell = cur[y][x]
                out = nxt[y][x]
                if cell.alive:
                    out.alive = n == 2 or n == 3
                    out.age = min(cell.age + 1, self.max_age) if out.alive else 0
                else:
                    out.alive = n == 3
                    out.age = 0
                if out.alive:
                    population += 1
        self._cells, self._next = nxt, cur
        self.generation += 1
        if population == self.population:
            self.stable_generations += 1
        else:
            self.stable_generations = 0
        self.population = population

    def _count_neighbors(self, x: int, y: int, columns: int, rows: int) -> int:
        count = 0
        cells = self._cells
        for ny in range(max(0, y - 1), min(rows, y + 2)):
            row = cells[ny]
            for nx in range(max(0, x - 1), min(columns, x + 2)):
                if (nx != x or ny != y) and row[nx].alive:
                    count += 1
        return count

    def seed(self) -> None:
        """Scatter preset shapes plus random noise over the grid."""
        columns, rows = self.kit.columns, self.kit.rows
        if not self._cells:
            return
        rng = self.kit.rng
        density = self.kit.density_multiplier()
        names = list(SHAPES)
        for _ in range(int(2 + density * 4)):
            shape = SHAPES[rng.choice(names)]
            start_x = self.kit.random_int(0, max(0, columns - len(shape[0])))
            start_y = self.kit.random_int(0, max(0, rows - len(shape)))
            self.place_shape(shape, start_x, start_y)
        noise = 0.1 * density
        for row in self._cells:
            for cell in row:
                if rng.chance(noise):
                    cell.alive = True
                    cell.age = 0
        self.population = self._count_population()

    def place_shape(self, shape: Shape, start_x: int, start_y: int) -> None:
        """Stamp a shape; parts falling outside the grid are clipped."""
        for dy, line in enumerate(shape):
            for dx, value in enumerate(line):
                if value:
                    self._set_alive(start_x + dx, start_y + dy)

    def set_cells(self, cells: Iterable[Tuple[int, int]]) -> None:
        """Replace the live set with exactly the given (x, y) cells."""
        self.clear()
        for x, y in cells:
            self._set_alive(x, y)
        self.population = self._count_population()

    def clear(self) -> None:
        for row in self._cells:
            for cell in row:
                cell.alive = False
                cell.age = 0
        self.population = 0
        self.stable_generations = 0

    def live_cells(self) -> Set[Tuple[int, int]]:
        return {(x, y) for y, row in enumerate(self._cells) for x, cell in enumerate(row) if cell.alive}

    def cell_at(self, x: int, y: int) -> Optional[Cell]:
        if 0 <= y < len(self._cells) and 0 <= x < len(self._cells[y]):
            return self._cells[y][x]
        return None

    def reset_simulation(self) -> None:
        self._reset_counters()
        self.clear()
        self.seed()

    def get_animation_state(self) -> Dict[str, Any]:
        return {
            "generation": self.generation,
            "population": self.population,
            "stable_generations": self.stable_generations,
            "update_interval": self.update_interval,
            "max_age": self.max_age,
            "reset_progress": self._reset_timer / self.reset_interval if self.reset_interval else 0.0,
        }

    # ---- internals --------------------------------------------------------

    def _set_alive(self, x: int, y: int) -> None:
        cell = self.cell_at(x, y)
        if cell is not None:
            cell.alive = True
            cell.age = 0

    def _count_population(self) -> int:
        return sum(1 for row in self._cells for cell in row if cell.alive)

    def _build_grids(self) -> None:
        self._cells = _empty_grid(self.kit.columns, self.kit.rows)
        self._next = _empty_grid(self.kit.columns, self.kit.rows)

    def _reset_counters(self) -> None:
        self.generation = 0
        self.population = 0
        self.stable_generations = 0
        self._update_timer = 0.0
        self._reset_timer = 0.0

    def _clamp_ages(self) -> None:
        for row in self._cells:
            for cell in row:
                cell.age = min(cell.age, self.max_age)

    def _apply_speed(self, speed: str) -> None:
        base_interval, self.reset_interval = SPEED_TIMINGS.get(speed, SPEED_TIMINGS["medium"])
        self.update_interval = base_interval

    def _apply_complexity(self, complexity: str) -> None:
        self.charset, self.max_age = COMPLEXITY_STYLES.get(complexity, COMPLEXITY_STYLES["medium"])

    def _render_info_overlay(self) -> None:
        kit = self.kit
        if kit.rows < 2 or kit.columns < 20:
            return
        info = f"Conway's Life | Gen: {self.generation} | Pop: {self.population}"
        kit.draw_text(info, 0, kit.rows - 1, kit.theme.info)
