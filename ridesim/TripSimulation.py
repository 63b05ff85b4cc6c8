import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple

from ridesim import settings
from ridesim.LocationStore import TripContext
from ridesim.RouteBase import Route
from ridesim.TripStage import TripStage
from ridesim.VehicleState import VehicleState
from ridesim.directions import DirectionsClient
from ridesim.errors import InvalidCoordinateError, StageTransitionError
from ridesim.geo import Coordinate, offset, validate_coordinate
from ridesim.interpolator import Animation, VehicleAnimator
from ridesim.route_repository import RouteRepository
from ridesim.scheduler import Scheduler, Timer
from ridesim.ws_bus import EventBus, StageChanged, TripDegraded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TripTimings:
    searching_ms: float = settings.SEARCHING_DELAY_MS
    driver_found_ms: float = settings.DRIVER_FOUND_DELAY_MS
    driver_to_pickup_ms: float = settings.DRIVER_TO_PICKUP_MS
    pickup_to_destination_ms: float = settings.PICKUP_TO_DESTINATION_MS

    @classmethod
    def for_ride(cls, ride_id: str) -> "TripTimings":
        profile = settings.RIDE_PROFILES.get(ride_id, {})
        return cls(
            driver_to_pickup_ms=profile.get("driver_to_pickup_ms", settings.DRIVER_TO_PICKUP_MS),
            pickup_to_destination_ms=profile.get("pickup_to_destination_ms", settings.PICKUP_TO_DESTINATION_MS),
        )


def ride_icon(ride_id: str) -> str:
    return settings.RIDE_PROFILES.get(ride_id, {}).get("icon", settings.DEFAULT_ICON)


def synthetic_driver_start(pickup: Coordinate) -> Coordinate:
    # there is no driver telemetry; start the driver ~1 km north-east of pickup
    return offset(pickup, settings.DRIVER_OFFSET_LNG, settings.DRIVER_OFFSET_LAT)


class TripSimulation:
    """
    Stage machine for one simulated trip:

        SEARCHING_DRIVER -(searching_ms)-> DRIVER_FOUND -(driver_found_ms)->
        DRIVER_TO_PICKUP -(animation done)-> PICKUP_TO_DESTINATION
        -(animation done)-> ARRIVED

    It is the only writer of the active route and the active animation.
    Must be started from inside a running event loop because route fetches
    run as tasks.
    """

    def __init__(self,
                 context: TripContext,
                 client: DirectionsClient,
                 scheduler: Scheduler,
                 bus: Optional[EventBus] = None,
                 routes: Optional[RouteRepository] = None,
                 animator: Optional[VehicleAnimator] = None,
                 timings: Optional[TripTimings] = None,
                 fetch_pickup_route: bool = True):
        self.trip_id = str(uuid.uuid4())
        self.context = context
        self.scheduler = scheduler
        self.bus = bus if bus is not None else EventBus()
        self.routes = routes if routes is not None else RouteRepository(client)
        self.animator = animator if animator is not None else VehicleAnimator(scheduler)
        self.timings = timings if timings is not None else TripTimings.for_ride(context.selection.id)
        self.icon = ride_icon(context.selection.id)
        self.fetch_pickup_route = fetch_pickup_route

        self.stage = TripStage.SEARCHING_DRIVER
        self.vehicle: Optional[VehicleState] = None
        self.driver_start: Optional[Coordinate] = None
        self.start_ride_available = False
        self.last_error: Optional[Exception] = None
        self.history: List[Tuple[TripStage, float]] = []
        self.travelled_routes: Dict[TripStage, Route] = {}
        self.started = False
        self.cancelled = False
        self.settled = asyncio.Event()

        self._timer: Optional[Timer] = None
        self._animation: Optional[Animation] = None
        self._animation_started: Set[TripStage] = set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def done(self) -> bool:
        return self.stage is TripStage.ARRIVED

    @property
    def status_text(self) -> str:
        return self.stage.status_text

    @property
    def animation(self) -> Optional[Animation]:
        return self._animation

    def start(self) -> None:
        if self.started:
            return
        self.started = True
        self.history.append((self.stage, self.scheduler.now_ms()))
        logger.info("Trip %s started, searching for a %s driver",
                    self.trip_id, self.context.selection.name)
        self._publish_stage(None)
        self._timer = self.scheduler.call_later(
            self.timings.searching_ms, lambda: self._advance(TripStage.DRIVER_FOUND))

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        if self._animation is not None:
            self._animation.cancel()
        for task in list(self._tasks):
            task.cancel()
        self.settled.set()
        logger.info("Trip %s cancelled during %s", self.trip_id, self.stage.name)

    # -------------------------
    # transitions
    # -------------------------
    def _advance(self, to: TripStage) -> None:
        if self.cancelled:
            return
        if self.stage.next is not to:
            raise StageTransitionError(f"Cannot go from {self.stage.name} to {to.name}")

        if self._animation is not None:
            self._animation.cancel()
            self._animation = None

        previous = self.stage
        self.routes.invalidate(previous)
        self.stage = to
        self.history.append((to, self.scheduler.now_ms()))
        if to is TripStage.PICKUP_TO_DESTINATION:
            self.start_ride_available = True
        logger.info("Trip %s: %s -> %s", self.trip_id, previous.name, to.name)
        self._publish_stage(previous)

        if to is TripStage.DRIVER_FOUND:
            self._timer = self.scheduler.call_later(
                self.timings.driver_found_ms, lambda: self._advance(TripStage.DRIVER_TO_PICKUP))
        elif to is TripStage.DRIVER_TO_PICKUP:
            self._enter_driver_to_pickup()
        elif to is TripStage.PICKUP_TO_DESTINATION:
            self._spawn_task(self._route_and_animate())
        elif to is TripStage.ARRIVED:
            self.settled.set()

    def _enter_driver_to_pickup(self) -> None:
        stage = TripStage.DRIVER_TO_PICKUP
        try:
            pickup = validate_coordinate(self.context.pickup.coordinates)
        except InvalidCoordinateError as e:
            self._degrade(stage, f"Cannot animate: {e}", e)
            return
        self.driver_start = synthetic_driver_start(pickup)
        if self.fetch_pickup_route:
            self._spawn_task(self._fetch_display_route(self.driver_start, pickup))
        # straight line; the fetched route is only drawn
        self._spawn_animation(stage, [self.driver_start, pickup], self.timings.driver_to_pickup_ms,
                              lambda: self._advance(TripStage.PICKUP_TO_DESTINATION))

    async def _fetch_display_route(self, origin: Coordinate, destination: Coordinate) -> None:
        stage = TripStage.DRIVER_TO_PICKUP
        result = await self.routes.fetch(origin, destination, stage)
        if not result.ok:
            logger.info("Driver route unavailable, showing straight line only")
            return
        if self.stage is not stage or self.cancelled:
            self.routes.invalidate(stage)
            return
        self.travelled_routes[stage] = result.route

    async def _route_and_animate(self) -> None:
        stage = TripStage.PICKUP_TO_DESTINATION
        result = await self.routes.fetch(
            self.context.pickup.coordinates, self.context.destination.coordinates, stage)
        if self.cancelled or self.stage is not stage:
            return
        if not result.ok:
            # vehicle stays where it is, ARRIVED is never reached
            self._degrade(stage, f"Route unavailable: {result.error}", result.error)
            return
        self.travelled_routes[stage] = result.route
        self._spawn_animation(stage, result.route.geometry, self.timings.pickup_to_destination_ms,
                              lambda: self._advance(TripStage.ARRIVED))

    # -------------------------
    # helpers
    # -------------------------
    def _spawn_animation(self, stage: TripStage, path: List[Coordinate], duration_ms: float,
                         on_complete: Callable[[], None]) -> Optional[Animation]:
        if stage in self._animation_started:
            logger.debug("Animation for %s already started, ignoring", stage.name)
            return None
        self._animation_started.add(stage)

        if self._animation is not None:
            self._animation.cancel()
            self._animation = None
        try:
            self._animation = self.animator.animate(path, duration_ms, stage, self._on_vehicle, on_complete)
        except ValueError as e:
            self._degrade(stage, f"Cannot animate: {e}", e)
            return None
        return self._animation

    def _on_vehicle(self, state: VehicleState) -> None:
        self.vehicle = state
        self.bus.publish(state)

    def _degrade(self, stage: TripStage, reason: str, error: Optional[Exception]) -> None:
        self.last_error = error
        logger.warning("Trip %s degraded in %s: %s", self.trip_id, stage.name, reason)
        self.bus.publish(TripDegraded(stage=stage, reason=reason))
        self.settled.set()

    def _publish_stage(self, previous: Optional[TripStage]) -> None:
        self.bus.publish(StageChanged(
            stage=self.stage,
            previous=previous,
            status_text=self.status_text,
            start_ride_available=self.start_ride_available,
        ))

    def _spawn_task(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Trip %s background task failed", self.trip_id, exc_info=exc)

    def snapshot(self) -> dict:
        pickup = self.context.pickup
        destination = self.context.destination
        return {
            "trip_id": self.trip_id,
            "stage": self.stage.name,
            "status": self.status_text,
            "start_ride_available": self.start_ride_available,
            "ride": {
                "id": self.context.selection.id,
                "name": self.context.selection.name,
                "price": self.context.selection.price,
                "icon": self.icon,
            },
            "pickup": {"address": pickup.address, "coordinates": list(pickup.coordinates)},
            "destination": {"address": destination.address, "coordinates": list(destination.coordinates)},
            "vehicle": self.vehicle.to_dict() if self.vehicle else None,
            "routes": {stage.name: route.to_geojson() for stage, route in self.travelled_routes.items()},
            "error": str(self.last_error) if self.last_error else None,
            "cancelled": self.cancelled,
        }
