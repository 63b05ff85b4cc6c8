"""
Device position lookup.

The browser reports failures as numeric codes (1 permission denied,
2 position unavailable, 3 timeout). They are mapped to user-facing messages
here and surfaced as LocationUnavailableError; nothing is retried.
"""
import logging
from enum import Enum
from typing import Optional, Protocol

from ridesim.LocationStore import Location
from ridesim.errors import LocationUnavailableError
from ridesim.geo import Coordinate, validate_coordinate

logger = logging.getLogger(__name__)


class GeolocationErrorCode(Enum):
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3
    UNSUPPORTED = 0


MESSAGES = {
    GeolocationErrorCode.PERMISSION_DENIED:
        "Location permission denied. Allow location access to book a ride.",
    GeolocationErrorCode.POSITION_UNAVAILABLE:
        "Your location is unavailable right now. Enter a pickup address instead.",
    GeolocationErrorCode.TIMEOUT:
        "Timed out while finding your location. Try again or enter a pickup address.",
    GeolocationErrorCode.UNSUPPORTED:
        "Location services are not supported on this device.",
}


class GeolocationError(LocationUnavailableError):
    def __init__(self, code: GeolocationErrorCode):
        self.code = code
        super().__init__(MESSAGES[code], {"code": code.value})

    @classmethod
    def from_code(cls, code: int) -> "GeolocationError":
        try:
            return cls(GeolocationErrorCode(code))
        except ValueError:
            return cls(GeolocationErrorCode.POSITION_UNAVAILABLE)


class LocationProvider(Protocol):
    async def current_position(self) -> Coordinate: ...


class ReverseGeocoder(Protocol):
    async def reverse_geocode(self, coordinate: Coordinate) -> str: ...


class StaticLocationProvider:
    """Fixed position (or fixed failure) for the CLI and tests."""

    def __init__(self, position: Optional[Coordinate] = None,
                 error: Optional[GeolocationErrorCode] = None):
        if position is None and error is None:
            error = GeolocationErrorCode.UNSUPPORTED
        self.position = position
        self.error = error

    async def current_position(self) -> Coordinate:
        if self.error is not None:
            raise GeolocationError(self.error)
        return self.position


async def locate_pickup(provider: LocationProvider, geocoder: ReverseGeocoder) -> Location:
    coordinate = await provider.current_position()
    try:
        coordinate = validate_coordinate(coordinate)
    except ValueError as e:
        logger.warning("Geolocation returned an invalid position: %s", e)
        raise GeolocationError(GeolocationErrorCode.POSITION_UNAVAILABLE) from e
    address = await geocoder.reverse_geocode(coordinate)
    return Location(coordinates=coordinate, address=address)
