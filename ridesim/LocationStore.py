from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from ridesim.errors import LocationUnavailableError
from ridesim.geo import Coordinate, validate_coordinate


@dataclass(frozen=True)
class Location:
    coordinates: Coordinate  # (lng, lat)
    address: str


@dataclass(frozen=True)
class RideSelection:
    id: str
    name: str
    price: str
    eta_label: str = ""


@dataclass(frozen=True)
class TripContext:
    pickup: Location
    destination: Location
    selection: RideSelection


Listener = Callable[[Optional[Location], Optional[Location]], None]


class LocationStore:
    """
    Current pickup and destination. Entries are replaced wholesale, never
    mutated, and cleared when a new trip begins.
    """

    def __init__(self):
        self._pickup: Optional[Location] = None
        self._destination: Optional[Location] = None
        self._listeners: List[Listener] = []

    @property
    def pickup(self) -> Optional[Location]:
        return self._pickup

    @property
    def destination(self) -> Optional[Location]:
        return self._destination

    def set_pickup(self, location: Optional[Location]) -> None:
        if location is not None:
            location = replace(location, coordinates=validate_coordinate(location.coordinates))
        self._pickup = location
        self._notify()

    def set_destination(self, location: Optional[Location]) -> None:
        if location is not None:
            location = replace(location, coordinates=validate_coordinate(location.coordinates))
        self._destination = location
        self._notify()

    def clear(self) -> None:
        self._pickup = None
        self._destination = None
        self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._pickup, self._destination)

    def trip_context(self, selection: RideSelection) -> TripContext:
        if self._pickup is None:
            raise LocationUnavailableError("Pickup location is not set")
        if self._destination is None:
            raise LocationUnavailableError("Destination is not set")
        return TripContext(pickup=self._pickup, destination=self._destination, selection=selection)
