"""LayerManager: on-demand layers, compositing and property animation."""

import pygame
import pytest

from asciiscreen.errors import LayerNotFoundError, PatternNotFoundError
from asciiscreen.layers import LayerManager
from asciiscreen.render.glyphs import compute_grid
from asciiscreen.visual_effects import BLEND_MODES


def make_layers(surface, recorder, background=(0, 0, 0)):
    registry = {
        "red": recorder.factory(color=(200, 0, 0)),
        "blue": recorder.factory(color=(0, 0, 200)),
        # draws only background-coloured pixels
        "blank": recorder.factory(color=background),
    }

    def build(name, config=None):
        if name not in registry:
            raise PatternNotFoundError(name)
        pattern = registry[name](surface, config)
        pattern.name = name
        pattern.initialize()
        return pattern

    return LayerManager(surface, compute_grid(*surface.get_size(), 8, 14), build, background=background)


@pytest.fixture
def layers(surface, recorder):
    lm = make_layers(surface, recorder)
    yield lm
    lm.cleanup()


def test_add_pattern_creates_layers_in_insertion_order(layers):
    layers.add_pattern_to_layer("back", "red")
    layers.add_pattern_to_layer("front", "blue")

    names = [layer.name for layer in layers.get_all_layers()]
    assert names == ["back", "front"]
    assert layers.get_layer("back").z_index < layers.get_layer("front").z_index
    assert layers.get_layer("back").pattern.surface is layers.get_layer("back").surface


def test_unknown_pattern_does_not_create_layer(layers):
    with pytest.raises(PatternNotFoundError):
        layers.add_pattern_to_layer("ghost", "nope")
    assert layers.get_layer("ghost") is None


@pytest.mark.parametrize(
    "call",
    [
        lambda lm: lm.update_layer("missing", opacity=0.5),
        lambda lm: lm.apply_layer_effect("missing", "blur", 2),
        lambda lm: lm.animate_layer("missing", "opacity", 1.0, 100),
        lambda lm: lm.remove_layer("missing"),
        lambda lm: lm.clear_layer_effect("missing"),
    ],
)
def test_operations_on_unknown_layer_raise(layers, call):
    with pytest.raises(LayerNotFoundError):
        call(layers)


def test_replacing_a_layer_pattern_cleans_up_old_one(layers, recorder):
    layers.add_pattern_to_layer("L", "red")
    fut = layers.add_pattern_to_layer("L", "blue")
    red, blue = recorder.instances
    assert fut.result(timeout=0) == "blue"
    assert red.calls["cleanup"] == 1
    assert layers.get_layer("L").pattern is blue


def test_layer_transition_runs_on_update(layers, recorder):
    layers.add_pattern_to_layer("L", "red")
    fut = layers.add_pattern_to_layer("L", "blue", {"type": "fade", "duration": 200})
    red, blue = recorder.instances
    layer = layers.get_layer("L")
    assert layer.transitions.is_transitioning()
    assert layers.live_patterns() == [red, blue]

    layers.update(100)
    assert not fut.done()
    layers.update(100)

    assert fut.result(timeout=0) == "blue"
    assert layer.pattern is blue
    assert blue.surface is layer.surface
    assert red.calls["cleanup"] == 1


def test_animate_layer_midpoint(layers):
    layers.add_pattern_to_layer("L", "red")
    layers.update_layer("L", opacity=0.0)

    fut = layers.animate_layer("L", "opacity", 1.0, 1000)
    layers.update(500)

    assert layers.get_layer("L").opacity == pytest.approx(0.5, abs=0.01)
    assert not fut.done()
    layers.update(500)
    assert layers.get_layer("L").opacity == pytest.approx(1.0)
    assert fut.result(timeout=0) == 1.0


def test_second_animation_replaces_the_first(layers):
    layers.add_pattern_to_layer("L", "red")
    layers.update_layer("L", opacity=0.0)
    first = layers.animate_layer("L", "opacity", 1.0, 1000)
    layers.update(500)

    second = layers.animate_layer("L", "opacity", 0.0, 500)
    layers.update(250)

    assert first.cancelled()
    # continues from 0.5 toward 0.0, not additive with the first animation
    assert layers.get_layer("L").opacity == pytest.approx(0.25, abs=0.01)
    layers.update(250)
    assert layers.get_layer("L").opacity == pytest.approx(0.0)
    assert second.done()


def test_z_index_animation_reorders(layers):
    layers.add_pattern_to_layer("a", "red")
    layers.add_pattern_to_layer("b", "blue")
    layers.animate_layer("a", "z_index", 5, 100)
    layers.update(100)
    assert [layer.name for layer in layers.get_all_layers()] == ["b", "a"]


def test_composite_orders_by_z_index(layers, surface):
    layers.add_pattern_to_layer("bottom", "red")
    layers.add_pattern_to_layer("top", "blue")
    layers.update(16)
    layers.composite()
    assert tuple(surface.get_at((4, 4)))[:3] == (0, 0, 200)

    layers.update_layer("bottom", z_index=10)
    layers.update(16)
    layers.composite()
    assert tuple(surface.get_at((4, 4)))[:3] == (200, 0, 0)


BLENDED_OVER_RED = {
    # mode: (opacity 1.0, opacity 0.5) for blue (0, 0, 200) drawn over red (200, 0, 0)
    "normal": ((0, 0, 200), (100, 0, 100)),
    "add": ((200, 0, 200), (200, 0, 100)),
    "multiply": ((0, 0, 0), (100, 0, 0)),
    "subtract": ((200, 0, 0), (200, 0, 0)),
    "lighten": ((200, 0, 200), (200, 0, 100)),
    "darken": ((0, 0, 0), (128, 0, 0)),
}


def close_to(actual, expected, tolerance=3):
    return all(abs(a - e) <= tolerance for a, e in zip(actual, expected))


def test_every_blend_mode_has_an_expectation():
    assert set(BLENDED_OVER_RED) == set(BLEND_MODES)


@pytest.mark.parametrize("blend_mode", sorted(BLEND_MODES))
@pytest.mark.parametrize("opacity", [1.0, 0.5])
def test_blend_mode_over_drawn_pixels(layers, surface, blend_mode, opacity):
    layers.add_pattern_to_layer("bottom", "red")
    layers.add_pattern_to_layer("top", "blue")
    layers.update_layer("top", blend_mode=blend_mode, opacity=opacity)
    layers.update(16)
    layers.composite()

    expected = BLENDED_OVER_RED[blend_mode][0 if opacity == 1.0 else 1]
    assert close_to(tuple(surface.get_at((4, 4)))[:3], expected)
    assert tuple(surface.get_at((100, 100)))[:3] == (0, 0, 0)


@pytest.mark.parametrize("blend_mode", sorted(BLEND_MODES))
@pytest.mark.parametrize("opacity", [1.0, 0.99, 0.5])
@pytest.mark.parametrize("background", [(0, 0, 0), (40, 40, 40)])
def test_blend_mode_leaves_undrawn_pixels_alone(surface, recorder, blend_mode, opacity, background):
    layers = make_layers(surface, recorder, background=background)
    layers.add_pattern_to_layer("bottom", "red")
    layers.add_pattern_to_layer("top", "blank")
    layers.update_layer("top", blend_mode=blend_mode, opacity=opacity)
    layers.update(16)
    layers.composite()

    assert tuple(surface.get_at((4, 4)))[:3] == (200, 0, 0)
    assert tuple(surface.get_at((100, 100)))[:3] == background
    layers.cleanup()


def test_zero_opacity_and_unknown_blend_mode(layers, surface):
    layers.add_pattern_to_layer("bottom", "red")
    layers.add_pattern_to_layer("top", "blue")
    layers.update_layer("top", blend_mode="add", opacity=0.0)
    layers.update(16)
    layers.composite()
    assert tuple(surface.get_at((4, 4)))[:3] == (200, 0, 0)

    with pytest.raises(ValueError):
        layers.update_layer("top", blend_mode="overlay")


def test_effects_apply_and_clear(layers):
    layers.add_pattern_to_layer("L", "red")
    layers.apply_layer_effect("L", "blur", 2)
    layers.apply_layer_effect("L", "blur", 3)
    layers.apply_layer_effect("L", "glow")
    assert layers.get_layer("L").effects == [("blur", 3.0), ("glow", 1.0)]

    layers.update(16)
    layers.composite()

    layers.clear_layer_effect("L")
    assert layers.get_layer("L").effects == []
    with pytest.raises(ValueError):
        layers.apply_layer_effect("L", "sepia")


def test_remove_layer_cleans_pattern_once(layers, recorder):
    layers.add_pattern_to_layer("L", "red")
    fut = layers.animate_layer("L", "opacity", 0.2, 1000)
    layers.remove_layer("L")
    assert recorder.instances[0].calls["cleanup"] == 1
    assert fut.cancelled()
    assert layers.get_layer("L") is None


def test_resize_reallocates_layer_surfaces(layers, recorder):
    layers.add_pattern_to_layer("L", "red")
    old = layers.get_layer("L").surface
    bigger = pygame.Surface((400, 300))

    layers.resize(bigger, compute_grid(400, 300, 8, 14))

    layer = layers.get_layer("L")
    assert layer.surface is not old
    assert layer.surface.get_size() == (400, 300)
    assert layer.pattern.surface is layer.surface
    assert recorder.instances[0].size == (50, 21)
