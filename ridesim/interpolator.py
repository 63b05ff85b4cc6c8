"""
Moves a vehicle along a path over a fixed wall-clock duration.

Two modes, picked from the path length:
  * two points: straight-line lerp, bearing computed once for the whole run
  * polyline:   progress t maps to segment floor(t * (N - 1)); bearing is
                recomputed only when the segment changes
"""
import logging
import math
from typing import Callable, List, Optional, Sequence

from ridesim import settings
from ridesim.TripStage import TripStage
from ridesim.VehicleState import VehicleState
from ridesim.geo import Coordinate, bearing, lerp, validate_path
from ridesim.scheduler import Scheduler, Timer

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[VehicleState], None]
CompleteCallback = Callable[[], None]


class Animation:
    def __init__(self,
                 scheduler: Scheduler,
                 path: List[Coordinate],
                 duration_ms: float,
                 stage: TripStage,
                 tick_ms: float,
                 on_update: UpdateCallback,
                 on_complete: Optional[CompleteCallback] = None):
        self.path = path
        self.duration_ms = float(duration_ms)
        self.stage = stage
        self.tick_ms = tick_ms
        self._scheduler = scheduler
        self._on_update = on_update
        self._on_complete = on_complete
        self._timer: Optional[Timer] = None
        self._start_ms = 0.0
        self._segment = 0
        self._bearing = self._initial_bearing()
        self.state: Optional[VehicleState] = None
        self.finished = False
        self.cancelled = False

    @property
    def linear(self) -> bool:
        return len(self.path) == 2

    @property
    def active(self) -> bool:
        return not (self.finished or self.cancelled)

    def _initial_bearing(self) -> float:
        for a, b in zip(self.path, self.path[1:]):
            if a != b:
                return bearing(a, b)
        return 0.0

    def start(self) -> "Animation":
        self._start_ms = self._scheduler.now_ms()
        self._emit(0.0)
        self._timer = self._scheduler.call_every(self.tick_ms, self._tick)
        return self

    def cancel(self) -> None:
        if self.cancelled or self.finished:
            return
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        logger.debug("Animation for %s cancelled at progress %.3f",
                     self.stage.name, self.state.progress if self.state else 0.0)

    def position_at(self, t: float) -> Coordinate:
        if t >= 1.0:
            return self.path[-1]
        if t <= 0.0:
            return self.path[0]
        if self.linear:
            return lerp(self.path[0], self.path[1], t)
        idx, frac = self._segment_at(t)
        return lerp(self.path[idx], self.path[idx + 1], frac)

    def _segment_at(self, t: float):
        n_seg = len(self.path) - 1
        scaled = t * n_seg
        idx = min(int(math.floor(scaled)), n_seg - 1)
        return idx, scaled - idx

    def _bearing_at(self, t: float) -> float:
        if self.linear:
            return self._bearing
        idx, _ = self._segment_at(min(t, 1.0))
        if idx != self._segment:
            self._segment = idx
            a, b = self.path[idx], self.path[idx + 1]
            # zero-length segment: keep facing the same way
            if a != b:
                self._bearing = bearing(a, b)
        return self._bearing

    def _tick(self) -> None:
        if not self.active:
            return
        elapsed = self._scheduler.now_ms() - self._start_ms
        t = min(elapsed / self.duration_ms, 1.0)
        if self.state is not None and t <= self.state.progress:
            return
        self._emit(t)
        if t >= 1.0 and not self.cancelled:
            self.finished = True
            if self._timer is not None:
                self._timer.cancel()
            if self._on_complete is not None:
                self._on_complete()

    def _emit(self, t: float) -> None:
        self.state = VehicleState(
            position=self.position_at(t),
            bearing_degrees=self._bearing_at(t),
            stage=self.stage,
            progress=t,
        )
        self._on_update(self.state)


class VehicleAnimator:
    """Starts animations on a scheduler with a fixed tick cadence."""

    def __init__(self, scheduler: Scheduler, tick_ms: float = settings.TICK_MS):
        self.scheduler = scheduler
        self.tick_ms = tick_ms

    def animate(self,
                path: Sequence[Coordinate],
                duration_ms: float,
                stage: TripStage,
                on_update: UpdateCallback,
                on_complete: Optional[CompleteCallback] = None) -> Animation:
        """
        Emit VehicleState updates from path[0] (progress 0) to path[-1]
        (progress 1), then call on_complete once.
        Raises InvalidCoordinateError for NaN/out-of-range points and
        ValueError for a non-positive duration; nothing is emitted then.
        """
        points = validate_path(path)
        if not duration_ms > 0:
            raise ValueError(f"duration_ms must be positive, got {duration_ms}")
        logger.debug("Animating %s over %d points for %.0f ms",
                     stage.name, len(points), duration_ms)
        return Animation(self.scheduler, points, duration_ms, stage,
                         self.tick_ms, on_update, on_complete).start()
