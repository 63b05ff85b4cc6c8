import asyncio

import pytest

from ridesim.LocationStore import Location, LocationStore, RideSelection
from ridesim.errors import InvalidCoordinateError, LocationUnavailableError
from ridesim.geolocation import (GeolocationError, GeolocationErrorCode, StaticLocationProvider,
                                 locate_pickup)

PICKUP = Location((77.59, 12.97), "MG Road")
DESTINATION = Location((77.64, 12.99), "Indiranagar")
RIDE = RideSelection(id="auto", name="Auto", price="81.84")


def test_locations_replaced_wholesale():
    store = LocationStore()
    seen = []
    store.subscribe(lambda p, d: seen.append((p, d)))

    store.set_pickup(PICKUP)
    store.set_destination(DESTINATION)
    moved = Location((77.60, 12.98), "Brigade Road")
    store.set_pickup(moved)

    assert store.pickup is moved
    assert PICKUP.coordinates == (77.59, 12.97)
    assert seen[-1] == (moved, DESTINATION)
    assert len(seen) == 3


def test_location_is_immutable():
    with pytest.raises(AttributeError):
        PICKUP.address = "elsewhere"


def test_trip_context_requires_both_locations():
    store = LocationStore()
    with pytest.raises(LocationUnavailableError):
        store.trip_context(RIDE)
    store.set_pickup(PICKUP)
    with pytest.raises(LocationUnavailableError):
        store.trip_context(RIDE)

    store.set_destination(DESTINATION)
    context = store.trip_context(RIDE)
    assert context.pickup is PICKUP
    assert context.destination is DESTINATION
    assert context.selection is RIDE


def test_clear_for_new_trip():
    store = LocationStore()
    store.set_pickup(PICKUP)
    store.set_destination(DESTINATION)
    store.clear()
    assert store.pickup is None and store.destination is None


def test_rejects_invalid_coordinates():
    store = LocationStore()
    with pytest.raises(InvalidCoordinateError):
        store.set_pickup(Location((float("nan"), 12.97), "nowhere"))
    assert store.pickup is None


def test_coordinates_stored_as_validated_floats():
    store = LocationStore()
    store.set_pickup(Location(("77.59", "12.97"), "MG Road"))
    store.set_destination(Location((77, "12.99"), "Indiranagar"))

    assert store.pickup.coordinates == (77.59, 12.97)
    assert all(isinstance(v, float) for v in store.pickup.coordinates)
    assert store.destination.coordinates == (77.0, 12.99)
    assert isinstance(store.destination.coordinates[0], float)
    assert store.pickup.address == "MG Road"


def test_unsubscribe():
    store = LocationStore()
    seen = []
    unsubscribe = store.subscribe(lambda p, d: seen.append(p))
    unsubscribe()
    store.set_pickup(PICKUP)
    assert seen == []


class FakeGeocoder:
    async def reverse_geocode(self, coordinate):
        return "MG Road, Bengaluru"


def test_locate_pickup():
    provider = StaticLocationProvider((77.59, 12.97))
    location = asyncio.run(locate_pickup(provider, FakeGeocoder()))
    assert location == Location((77.59, 12.97), "MG Road, Bengaluru")


@pytest.mark.parametrize("code", list(GeolocationErrorCode))
def test_geolocation_errors_are_surfaced(code):
    provider = StaticLocationProvider(error=code)
    with pytest.raises(LocationUnavailableError) as info:
        asyncio.run(locate_pickup(provider, FakeGeocoder()))
    assert info.value.code is code
    assert info.value.message


def test_invalid_device_position_is_unavailable():
    provider = StaticLocationProvider((200.0, 12.97))
    with pytest.raises(GeolocationError) as info:
        asyncio.run(locate_pickup(provider, FakeGeocoder()))
    assert info.value.code is GeolocationErrorCode.POSITION_UNAVAILABLE


def test_browser_error_codes():
    assert GeolocationError.from_code(1).code is GeolocationErrorCode.PERMISSION_DENIED
    assert GeolocationError.from_code(3).code is GeolocationErrorCode.TIMEOUT
    assert GeolocationError.from_code(42).code is GeolocationErrorCode.POSITION_UNAVAILABLE
    assert "denied" in GeolocationError.from_code(1).message
