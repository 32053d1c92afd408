"""TransitionManager state machine and effect renderers."""

from concurrent.futures import Future

import pygame
import pytest

from asciiscreen.errors import InvalidTransitionConfigError
from asciiscreen.rng import new_rng
from asciiscreen.transitions import (
    TRANSITION_EFFECTS,
    TransitionConfig,
    TransitionManager,
    ease_in_out_cubic,
)


@pytest.fixture
def pair(surface, recorder):
    make = recorder.factory()
    a, b = make(surface), make(surface)
    for p, name in ((a, "A"), (b, "B")):
        p.name = name
        p.initialize()
    return a, b


def _manager(surface, adopted):
    return TransitionManager(surface, on_complete=adopted.append, rng=new_rng(7))


def test_progress_is_monotonic_and_reaches_exactly_one(surface, pair):
    adopted = []
    tm = _manager(surface, adopted)
    a, b = pair
    tm.start(a, b, TransitionConfig(type="fade", duration=250))

    seen = []
    for delta in (30, 0, 70, -10, 90, 40, 40):
        tm.advance(delta)
        seen.append(tm.get_state().progress if tm.is_transitioning() else 1.0)

    assert seen == sorted(seen)
    assert seen[-1] == 1.0
    assert adopted == [b]
    assert not tm.is_transitioning()


def test_completion_order_and_future(surface, pair):
    order = []
    a, b = pair
    future = Future()
    tm = TransitionManager(surface, on_complete=lambda p: order.append(("adopt", p.name)))
    a.cleanup = lambda: order.append(("cleanup", "A"))
    future.add_done_callback(lambda f: order.append(("resolved", f.result())))

    tm.start(a, b, TransitionConfig(duration=100), future)
    assert tm.advance(100) is True

    assert order == [("cleanup", "A"), ("adopt", "B"), ("resolved", "B")]


def test_force_complete_returns_incoming_pattern(surface, pair):
    adopted = []
    tm = _manager(surface, adopted)
    a, b = pair
    tm.start(a, b, TransitionConfig(duration=1000))
    tm.advance(10)

    assert tm.force_complete() is b
    assert a.calls["cleanup"] == 1
    assert tm.get_state().type == "idle"
    assert tm.force_complete() is None


def test_abort_cleans_up_both_and_cancels(surface, pair):
    tm = _manager(surface, [])
    a, b = pair
    future = Future()
    tm.start(a, b, TransitionConfig(duration=1000), future)

    tm.abort()

    assert future.cancelled()
    assert a.calls["cleanup"] == 1 and b.calls["cleanup"] == 1


def test_start_renders_offscreen(surface, pair):
    tm = _manager(surface, [])
    a, b = pair
    tm.start(a, b, TransitionConfig(duration=1000))
    assert a.surface is not surface and b.surface is not surface
    assert a.surface is not b.surface


@pytest.mark.parametrize(
    "value",
    [
        {"type": "swirl"},
        {"type": "fade", "duration": 0},
        {"type": "fade", "duration": -1},
        {"type": "fade", "duration": "soon"},
    ],
)
def test_invalid_configs_raise(value):
    with pytest.raises(InvalidTransitionConfigError):
        TransitionConfig.coerce(value).validate()


def test_coerce_rejects_unknown_keys():
    with pytest.raises(InvalidTransitionConfigError):
        TransitionConfig.coerce({"type": "fade", "speed": 3})


def test_coerce_accepts_names_and_mappings():
    assert TransitionConfig.coerce("slide").type == "slide"
    cfg = TransitionConfig.coerce({"type": "morph", "duration": 400})
    assert (cfg.type, cfg.duration) == ("morph", 400)
    assert TransitionConfig.coerce(None) == TransitionConfig()


@pytest.mark.parametrize("effect", sorted(n for n, e in TRANSITION_EFFECTS.items() if e.render is not None))
def test_every_effect_renders_and_lands_on_incoming(effect, recorder):
    target = pygame.Surface((120, 80))
    make = recorder.factory(color=(250, 10, 10))
    a = make(target)
    b = recorder.factory(color=(10, 10, 250))(target)
    a.initialize()
    b.initialize()
    tm = TransitionManager(target, rng=new_rng(3), cell_size=(8, 14))
    tm.start(a, b, TransitionConfig(type=effect, duration=100))

    for _ in range(4):
        tm.advance(20)
    assert tm.is_transitioning()
    tm.advance(20)

    # at progress 1 only the incoming pattern is visible
    assert tuple(target.get_at((2, 2)))[:3] == (10, 10, 250)


def test_easing_endpoints():
    assert ease_in_out_cubic(0.0) == 0.0
    assert ease_in_out_cubic(1.0) == 1.0
    assert ease_in_out_cubic(0.5) == pytest.approx(0.5)
