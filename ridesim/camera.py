import logging
from typing import Any, Callable, Optional, Protocol

from ridesim import settings
from ridesim.VehicleState import VehicleState
from ridesim.geo import Coordinate
from ridesim.ws_bus import CameraMoved, EventBus

logger = logging.getLogger(__name__)

DEFAULT_ZOOM = 15.0


class CameraTarget(Protocol):
    def ease_to(self, center: Coordinate, duration_ms: float) -> None: ...


class Viewport:
    """Map viewport state. Publishes CameraMoved so a browser map can follow."""

    def __init__(self, center: Optional[Coordinate] = None, zoom: float = DEFAULT_ZOOM,
                 bus: Optional[EventBus] = None):
        self.center = center
        self.zoom = zoom
        self.bus = bus
        self.moves = 0

    def ease_to(self, center: Coordinate, duration_ms: float) -> None:
        self.center = center
        self.moves += 1
        if self.bus is not None:
            self.bus.publish(CameraMoved(center=center, zoom=self.zoom, duration_ms=duration_ms))


class CameraFollower:
    """
    Keeps the viewport centred on the vehicle. Easing lasts one tick so the
    camera moves at the same cadence as the marker.
    """

    def __init__(self, bus: EventBus, viewport: CameraTarget, tick_ms: float = settings.TICK_MS):
        self.viewport = viewport
        self.tick_ms = tick_ms
        self._unsubscribe: Optional[Callable[[], None]] = bus.subscribe(self._on_event)

    def _on_event(self, event: Any) -> None:
        if isinstance(event, VehicleState):
            self.viewport.ease_to(event.position, duration_ms=self.tick_ms)

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
