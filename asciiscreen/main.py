from __future__ import annotations

"""
Host window: a thin pygame binding around the engine.

The engine draws into an offscreen canvas; this loop owns the window, turns
window events into explicit engine calls and blits the canvas every frame.
"""

import logging
import random
from typing import Optional

import pygame

from asciiscreen.config import ConfigStore, EngineConfig
from asciiscreen.engine import Engine
from asciiscreen.patterns import BUILTIN_PATTERNS
from asciiscreen.scheduler import ClockTickSource
from asciiscreen.transitions import TRANSITION_EFFECTS, TransitionConfig

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 600)


def _next_pattern(engine: Engine) -> str:
    names = list(BUILTIN_PATTERNS)
    current = engine.get_current_pattern()
    if current is None or current.name not in names:
        return names[0]
    return names[(names.index(current.name) + 1) % len(names)]


def run(cfg: Optional[EngineConfig] = None, config_path: Optional[str] = None) -> None:
    cfg = cfg or EngineConfig()
    store = ConfigStore.from_yaml(config_path) if config_path else ConfigStore()

    pygame.init()
    screen = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)
    pygame.display.set_caption("asciiscreen")

    ticks = ClockTickSource(cfg.target_fps)
    engine = Engine(pygame.Surface(screen.get_size()), cfg, store=store, tick_source=ticks)
    engine.switch_pattern(_next_pattern(engine))
    engine.start_animation()

    effects = [name for name, eff in TRANSITION_EFFECTS.items() if eff.render is not None]
    try:
        running = True
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.VIDEORESIZE:
                    screen = pygame.display.set_mode((event.w, event.h), pygame.RESIZABLE)
                    engine.resize(event.w, event.h)
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        running = False
                    elif event.key == pygame.K_TAB:
                        engine.switch_pattern(
                            _next_pattern(engine),
                            TransitionConfig(type=random.choice(effects), duration=1200),
                        )
                    elif event.key == pygame.K_SPACE:
                        if engine.is_animating():
                            engine.stop_animation()
                        else:
                            engine.start_animation()

            ticks.pump()
            screen.blit(engine.get_surface(), (0, 0))
            pygame.display.flip()
    finally:
        engine.cleanup()
        pygame.quit()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    run()


if __name__ == "__main__":
    main()
