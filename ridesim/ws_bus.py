import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ridesim.TripStage import TripStage
from ridesim.VehicleState import VehicleState
from ridesim.geo import Coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageChanged:
    stage: TripStage
    previous: Optional[TripStage]
    status_text: str
    start_ride_available: bool = False


@dataclass(frozen=True)
class TripDegraded:
    stage: TripStage
    reason: str


@dataclass(frozen=True)
class CameraMoved:
    center: Coordinate
    zoom: float
    duration_ms: float


Subscriber = Callable[[Any], None]


class EventBus:
    """In-process fan-out of trip events. Subscribers only read."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def publish(self, event: Any) -> None:
        for callback in list(self._subscribers):
            callback(event)

    def __len__(self) -> int:
        return len(self._subscribers)


def event_to_dict(event: Any) -> Dict[str, Any]:
    if isinstance(event, VehicleState):
        return {"type": "position", "data": event.to_dict()}
    if isinstance(event, StageChanged):
        return {
            "type": "stage",
            "stage": event.stage.name,
            "previous": event.previous.name if event.previous else None,
            "status": event.status_text,
            "start_ride_available": event.start_ride_available,
        }
    if isinstance(event, TripDegraded):
        return {"type": "degraded", "stage": event.stage.name, "reason": event.reason}
    if isinstance(event, CameraMoved):
        lng, lat = event.center
        return {"type": "camera", "lng": lng, "lat": lat, "zoom": event.zoom,
                "duration_ms": event.duration_ms}
    raise TypeError(f"Unknown event: {event!r}")


def put_latest(q: asyncio.Queue, event: Dict[str, Any]) -> None:
    # keep only latest event if queue is full
    if q.full():
        try:
            q.get_nowait()
            q.task_done()
        except asyncio.QueueEmpty:
            pass
    q.put_nowait(event)

