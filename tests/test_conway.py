"""Conway-Life rules, timing and reseeding."""

import pygame
import pytest

from asciiscreen.patterns.conway import SHAPES, STABLE_GENERATION_LIMIT, ConwayLife


def _life(columns=10, rows=10, **config):
    cfg = {"seed": 42}
    cfg.update(config)
    life = ConwayLife(pygame.Surface((columns * 8, rows * 14)), cfg)
    life.on_resize(columns, rows)
    life.initialize()
    return life


BLINKER = {(1, 2), (2, 2), (3, 2)}


def test_blinker_has_period_two():
    life = _life(5, 5)
    life.set_cells(BLINKER)

    life.step()
    assert life.live_cells() == {(2, 1), (2, 2), (2, 3)}
    life.step()
    assert life.live_cells() == BLINKER


def test_birth_survival_and_death():
    life = _life(6, 6)
    # L-tromino: every live cell has two neighbours, (2, 2) has three
    life.set_cells({(1, 1), (2, 1), (1, 2)})
    life.step()
    assert life.live_cells() == {(1, 1), (2, 1), (1, 2), (2, 2)}

    life.set_cells({(0, 0)})
    life.step()
    assert life.live_cells() == set()


def test_edges_do_not_wrap():
    life = _life(5, 5)
    # a blinker lying along the top edge loses its upper half
    life.set_cells({(1, 0), (2, 0), (3, 0)})
    life.step()
    assert life.live_cells() == {(2, 0), (2, 1)}


def test_surviving_cells_age_up_to_max():
    life = _life(6, 6, complexity="high")
    assert life.max_age == 15
    block = {(1, 1), (2, 1), (1, 2), (2, 2)}
    life.set_cells(block)
    for _ in range(20):
        life.step()
    assert life.live_cells() == block
    assert {life.cell_at(x, y).age for x, y in block} == {15}


def test_one_generation_per_interval_and_catch_up():
    life = _life(8, 8, speed="medium")
    assert life.update_interval == 200
    life.set_cells(BLINKER)

    life.update(199)
    assert life.generation == 0
    life.update(1)
    assert life.generation == 1
    life.update(650)  # three more intervals, 50 ms carried
    assert life.generation == 4
    life.update(150)
    assert life.generation == 5


@pytest.mark.parametrize("speed,interval", [("slow", 500), ("medium", 200), ("fast", 100)])
def test_speed_sets_interval(speed, interval):
    assert _life(speed=speed).update_interval == interval


def test_stable_population_reseeds():
    life = _life(12, 12)
    life.set_cells({(4, 4), (5, 4), (4, 5), (5, 5)})

    life.update(life.update_interval * STABLE_GENERATION_LIMIT)

    assert life.generation == 0
    assert life.stable_generations == 0
    assert life.population > 0


def test_wall_clock_reseed():
    life = _life(20, 20, speed="fast")
    life.stable_generation_limit = 10**9
    life.set_cells(BLINKER)
    ticks = int(life.reset_interval // 100)
    for _ in range(ticks - 1):
        life.update(100)
    assert life.generation == ticks - 1

    life.update(100)
    assert life.generation == 0


def test_seed_on_tiny_grids():
    for size in ((3, 3), (1, 1), (2, 7)):
        life = _life(*size)
        assert life.population == len(life.live_cells())
        life.update(1000)
        life.render()


def test_no_op_before_initialize_and_after_cleanup():
    life = ConwayLife(pygame.Surface((80, 80)), {"seed": 1})
    life.update(1000)
    life.render()
    assert not life.initialized

    life.on_resize(10, 5)
    life.initialize()
    life.cleanup()
    life.cleanup()
    assert not life.initialized
    assert life.generation == 0
    life.update(1000)
    assert life.live_cells() == set()


def test_resize_rebuilds_grid():
    life = _life(10, 10)
    life.on_resize(30, 4)
    assert len(life.live_cells()) == life.population
    assert all(x < 30 and y < 4 for x, y in life.live_cells())


def test_render_draws_cells_and_overlay():
    life = _life(30, 6, show_info=True)
    surface = life.kit.surface

    def lit():
        w, h = surface.get_size()
        return any(tuple(surface.get_at((x, y)))[:3] != (0, 0, 0) for y in range(h) for x in range(w))

    life.set_cells(set())
    life.render()
    assert lit()  # info overlay only

    life.set_config({"degradation_level": 1})
    life.render()
    assert not lit()

    life.set_cells({(0, 0)})
    life.render()
    assert lit()


def test_place_shape_clips_at_edges():
    life = _life(5, 5)
    life.clear()
    life.place_shape(SHAPES["glider"], 3, 3)
    assert life.live_cells() == {(4, 3)}


def test_set_config_updates_timing_and_styles():
    life = _life()
    life.set_config({"speed": "slow", "complexity": "low"})
    assert life.update_interval == 500
    assert life.max_age == 5
    state = life.get_animation_state()
    assert state["update_interval"] == 500
