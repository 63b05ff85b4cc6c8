import asyncio
import math

import pytest

from ridesim.TripStage import TripStage
from ridesim.errors import InvalidCoordinateError
from ridesim.interpolator import VehicleAnimator
from ridesim.scheduler import AsyncioScheduler, VirtualScheduler

START = (77.602, 12.979)
END = (77.59, 12.97)


def start_animation(path, duration_ms, tick_ms=100):
    scheduler = VirtualScheduler()
    states = []
    completed = []
    animation = VehicleAnimator(scheduler, tick_ms=tick_ms).animate(
        path, duration_ms, TripStage.DRIVER_TO_PICKUP, states.append, lambda: completed.append(True))
    return scheduler, animation, states, completed


def test_linear_starts_and_ends_exactly_on_path():
    scheduler, animation, states, completed = start_animation([START, END], 50_000)

    assert len(states) == 1
    assert states[0].position == START
    assert states[0].progress == 0.0

    scheduler.advance(50_000)
    assert states[-1].position == END
    assert states[-1].progress == 1.0
    assert completed == [True]
    assert len(states) == 50_000 // 100 + 1
    assert animation.finished

    scheduler.advance(10_000)
    assert len(states) == 501
    assert completed == [True]


def test_progress_strictly_increasing_and_reaches_one_once():
    scheduler, _, states, _ = start_animation([START, END], 1234)
    scheduler.advance(5000)

    progresses = [s.progress for s in states]
    assert all(b > a for a, b in zip(progresses, progresses[1:]))
    assert progresses.count(1.0) == 1
    assert progresses[-1] == 1.0


def test_linear_midpoint_and_constant_bearing():
    scheduler, _, states, _ = start_animation([START, END], 50_000)
    scheduler.advance(25_000)

    mid = states[-1]
    assert mid.progress == 0.5
    assert mid.position[0] == pytest.approx((START[0] + END[0]) / 2)
    assert mid.position[1] == pytest.approx((START[1] + END[1]) / 2)
    assert len({s.bearing_degrees for s in states}) == 1
    # heading back south-west to pickup
    assert 180.0 < states[0].bearing_degrees < 270.0


def test_polyline_segments_and_bearing_per_segment():
    path = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0)]
    scheduler, _, states, completed = start_animation(path, 2000)
    scheduler.advance(2000)

    by_progress = {s.progress: s for s in states}
    assert by_progress[0.25].position == (0.0, 0.5)
    assert by_progress[0.75].position == (0.5, 1.0)
    assert by_progress[1.0].position == (1.0, 1.0)

    for s in states:
        if s.progress < 0.5:
            assert s.bearing_degrees == pytest.approx(0.0, abs=1e-9)
        else:
            assert s.bearing_degrees == pytest.approx(90.0, abs=0.1)
    assert completed == [True]


def test_polyline_keeps_bearing_over_zero_length_segment():
    path = [(0.0, 0.0), (0.0, 1.0), (0.0, 1.0), (1.0, 1.0)]
    scheduler, _, states, _ = start_animation(path, 3000)
    scheduler.advance(1500)

    # middle third sits on the repeated point
    assert states[-1].position == (0.0, 1.0)
    assert states[-1].bearing_degrees == pytest.approx(0.0, abs=1e-9)


def test_cancel_stops_emissions_and_completion():
    scheduler, animation, states, completed = start_animation([START, END], 10_000)
    scheduler.advance(500)
    emitted = len(states)

    animation.cancel()
    animation.cancel()
    scheduler.advance(20_000)

    assert len(states) == emitted
    assert completed == []
    assert animation.cancelled
    assert scheduler.pending == 0


def test_cancel_after_completion_is_noop():
    scheduler, animation, states, completed = start_animation([START, END], 300)
    scheduler.advance(300)
    animation.cancel()

    assert animation.finished
    assert not animation.cancelled
    assert completed == [True]


def test_duration_shorter_than_tick():
    scheduler, _, states, completed = start_animation([START, END], 40)
    scheduler.advance(100)

    assert [s.progress for s in states] == [0.0, 1.0]
    assert states[-1].position == END
    assert completed == [True]


@pytest.mark.parametrize("path", [
    [START, (float("nan"), 12.97)],
    [START, (77.59, 95.0)],
    [START],
    [],
])
def test_invalid_path_fails_before_any_emission(path):
    scheduler = VirtualScheduler()
    states = []
    with pytest.raises(InvalidCoordinateError):
        VehicleAnimator(scheduler).animate(path, 1000, TripStage.DRIVER_TO_PICKUP, states.append)
    assert states == []
    assert scheduler.pending == 0


@pytest.mark.parametrize("duration", [0, -5, math.nan])
def test_non_positive_duration_rejected(duration):
    with pytest.raises(ValueError):
        VehicleAnimator(VirtualScheduler()).animate([START, END], duration, TripStage.DRIVER_TO_PICKUP, print)


async def _test_runs_on_event_loop():
    done = asyncio.Event()
    states = []
    VehicleAnimator(AsyncioScheduler(), tick_ms=20).animate(
        [START, END], 150, TripStage.PICKUP_TO_DESTINATION, states.append, done.set)
    await asyncio.wait_for(done.wait(), 5)
    return states


def test_runs_on_event_loop():
    states = asyncio.run(_test_runs_on_event_loop())
    assert states[0].position == START
    assert states[-1].position == END
    assert states[-1].stage is TripStage.PICKUP_TO_DESTINATION
